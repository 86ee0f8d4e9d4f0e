"""
Tests for the provider fallback chain and the AI call log.
"""

import json
from unittest.mock import Mock

import pytest

from services import ai_adapter
from services.ai_adapter import (
    AIAdapter,
    AILogWriter,
    GeminiProvider,
    OpenAICompatibleProvider,
    build_ai_adapter,
    flatten_prompt,
    to_messages,
)
from services.errors import ProviderFailure


def fake_response(payload):
    response = Mock()
    response.json.return_value = payload
    return response


def completion(text):
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def gemini_client(text=None, error=None):
    client = Mock()
    if error is not None:
        client.models.generate_content.side_effect = error
    else:
        response = Mock()
        response.text = text
        response.model_dump.return_value = {"text": text}
        client.models.generate_content.return_value = response
    return client


def primary(api_key="sk-test"):
    return OpenAICompatibleProvider(api_key=api_key, base_url="https://llm.example/v1/",
                                    model="test-model", temperature=0.7, timeout=5)


def read_log(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "logs" / "ai.log"


def test_primary_success_skips_fallback(monkeypatch, log_path):
    post = Mock(return_value=fake_response(completion("  Short summary  ")))
    monkeypatch.setattr(ai_adapter.requests, "post", post)
    fallback_client = gemini_client("unused")
    adapter = AIAdapter([primary(), GeminiProvider("g-key", "gemini-test", client=fallback_client)],
                        AILogWriter(log_path))

    assert adapter.call_ai("Summarize this") == "Short summary"

    fallback_client.models.generate_content.assert_not_called()
    url = post.call_args.args[0]
    assert url == "https://llm.example/v1/chat/completions"
    sent = post.call_args.kwargs
    assert sent["headers"]["Authorization"] == "Bearer sk-test"
    assert sent["json"]["messages"] == [{"role": "user", "content": "Summarize this"}]
    assert sent["timeout"] == 5

    [entry] = read_log(log_path)
    assert entry["provider"] == "OpenAI-Compatible"
    assert entry["finalAnswer"] == "Short summary"
    assert entry["request"]["rawRequestBody"]["model"] == "test-model"
    assert entry["duration"].endswith("ms")
    assert "error" not in entry


def test_error_body_falls_back_to_gemini(monkeypatch, log_path):
    monkeypatch.setattr(ai_adapter.requests, "post",
                        Mock(return_value=fake_response({"error": {"message": "quota exceeded"}})))
    client = gemini_client("Fallback answer")
    adapter = AIAdapter([primary(), GeminiProvider("g-key", "gemini-test", client=client)],
                        AILogWriter(log_path))

    assert adapter.call_ai("hello") == "Fallback answer"

    client.models.generate_content.assert_called_once_with(model="gemini-test", contents="hello")
    [entry] = read_log(log_path)
    assert entry["provider"] == "Gemini-SDK"
    assert entry["request"]["fallbackPrompt"] == "hello"


def test_no_choices_is_a_failure(monkeypatch):
    monkeypatch.setattr(ai_adapter.requests, "post", Mock(return_value=fake_response({"choices": []})))
    adapter = AIAdapter([primary()])

    with pytest.raises(ProviderFailure) as exc_info:
        adapter.call_ai("hi")

    assert "Primary provider failed" in exc_info.value.message


def test_all_providers_failing_joins_errors(monkeypatch, log_path):
    monkeypatch.setattr(ai_adapter.requests, "post", Mock(side_effect=ConnectionError("refused")))
    client = gemini_client(error=RuntimeError("sdk down"))
    adapter = AIAdapter([primary(), GeminiProvider("g-key", "gemini-test", client=client)],
                        AILogWriter(log_path))

    with pytest.raises(ProviderFailure) as exc_info:
        adapter.call_ai("hi")

    message = exc_info.value.message
    assert message == "Primary provider failed: refused; Fallback provider failed: sdk down"
    [entry] = read_log(log_path)
    assert entry["error"] == message
    assert "finalAnswer" not in entry


def test_empty_gemini_text_is_a_failure(log_path):
    adapter = AIAdapter([primary(api_key=None),
                         GeminiProvider("g-key", "gemini-test", client=gemini_client(""))],
                        AILogWriter(log_path))

    with pytest.raises(ProviderFailure) as exc_info:
        adapter.call_ai("hi")
    assert "Fallback provider failed" in exc_info.value.message


def test_unconfigured_providers_are_skipped(monkeypatch):
    post = Mock()
    monkeypatch.setattr(ai_adapter.requests, "post", post)
    client = gemini_client("from gemini")
    adapter = AIAdapter([primary(api_key=None), GeminiProvider(None, "gemini-test", client=client)])

    assert adapter.call_ai("hi") == "from gemini"
    post.assert_not_called()


def test_no_provider_configured(log_path):
    adapter = AIAdapter([primary(api_key=None), GeminiProvider(None, "gemini-test")],
                        AILogWriter(log_path))

    assert adapter.configured is False
    with pytest.raises(ProviderFailure) as exc_info:
        adapter.call_ai("hi")

    assert exc_info.value.message == "No AI provider configured"
    assert read_log(log_path)[0]["error"] == "No AI provider configured"


def test_log_write_failure_does_not_fail_the_call(monkeypatch):
    monkeypatch.setattr(ai_adapter.requests, "post", Mock(return_value=fake_response(completion("ok"))))
    writer = Mock()
    writer.write.side_effect = OSError("disk full")
    adapter = AIAdapter([primary()], writer)

    assert adapter.call_ai("hi") == "ok"


def test_conversation_prompt_is_flattened_for_gemini():
    messages = [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "What is FTS?"},
        {"role": "assistant", "content": "Full-text search."},
    ]

    assert to_messages(messages) == messages
    assert flatten_prompt(messages) == (
        "Instruction: Be brief.\n\nUser: What is FTS?\n\nAssistant: Full-text search."
    )


def test_build_from_settings_without_keys(settings):
    adapter = build_ai_adapter(settings)

    assert [p.name for p in adapter.providers] == ["OpenAI-Compatible", "Gemini-SDK"]
    assert adapter.configured is False


def test_blank_primary_completion_falls_back(monkeypatch, log_path):
    monkeypatch.setattr(ai_adapter.requests, "post", Mock(return_value=fake_response(completion("   "))))
    client = gemini_client("from gemini")
    adapter = AIAdapter([primary(), GeminiProvider("g-key", "gemini-test", client=client)],
                        AILogWriter(log_path))

    assert adapter.call_ai("hi") == "from gemini"

    client.models.generate_content.assert_called_once()
    [entry] = read_log(log_path)
    assert entry["provider"] == "Gemini-SDK"


def test_blank_completion_from_only_provider_reports_it(monkeypatch):
    monkeypatch.setattr(ai_adapter.requests, "post", Mock(return_value=fake_response(completion(""))))
    adapter = AIAdapter([primary()])

    with pytest.raises(ProviderFailure) as exc_info:
        adapter.call_ai("hi")

    assert exc_info.value.message == "Primary provider failed: Empty response"
