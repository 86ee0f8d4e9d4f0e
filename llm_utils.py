import logging
import re
from typing import List, Optional, Sequence

from services.ai_adapter import AIAdapter
from services.errors import InvalidInput, NotesError

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10
EMPTY_NOTE_PLACEHOLDER = "(this note is currently empty)"

FORMAT_PROMPT = """You are a professional document typesetter. Polish and lay out the following Markdown content.
Requirements:
1. Fix spacing in mixed CJK and Latin text (add a space between Chinese characters and English words or numbers).
2. Fix Markdown syntax errors and irregularities (e.g. a space after heading markers, list nesting indentation).
3. Improve paragraphs and logical structure, adding separators where they make the content clearer.
4. Correct obvious typos and keep the language fluent.
5. **Never change the original meaning**, and do not add commentary or evaluation.
6. **First-line indent**: start every body paragraph with two full-width spaces (　　).
Output the complete formatted text directly:

---
{content}
---"""


class NoteAssistant:
    """Summaries, tag suggestions, chat and formatting for note content."""

    def __init__(self, adapter: AIAdapter):
        self.adapter = adapter

    def summarize(self, content: Optional[str]) -> str:
        """Generate a summary of at most 100 characters"""
        if not content or len(content) < 10:
            raise InvalidInput("Content is too short to summarize; at least 10 characters are required.")
        prompt = f"Summarize the following content in no more than 100 characters:\n\n{content}"
        try:
            return self.adapter.call_ai(prompt)
        except NotesError as e:
            logger.error(f"AI summarize failed: {e.message}")
            raise

    def suggest_tags(self, content: Optional[str]) -> List[str]:
        """Suggest tags for the given text; never raises"""
        if not content:
            return []
        prompt = (
            "Analyze the content and output 3 keyword tags separated by commas, "
            f"with no other text:\n\n{content}"
        )
        try:
            tags_text = self.adapter.call_ai(prompt)
        except Exception as e:
            logger.warning(f"Tag suggestion failed, returning none: {e}")
            return []
        return [tag.strip() for tag in re.split(r"[,，]", tags_text) if tag.strip()]

    def chat(self, content: Optional[str], question: Optional[str],
             history: Optional[Sequence[dict]] = None) -> str:
        if not question:
            raise InvalidInput("Please enter a question.")

        # Sliding window keeps the prompt bounded on long conversations
        recent_history = list(history or [])[-HISTORY_WINDOW:]

        messages = [
            {
                "role": "system",
                "content": (
                    "You are a professional note-taking companion. The following note is provided "
                    f"as reference context:\n---\n{content or EMPTY_NOTE_PLACEHOLDER}\n---\n"
                    "Give concise, professional answers based on the context and the recent conversation."
                ),
            },
            *recent_history,
            {"role": "user", "content": question},
        ]
        try:
            return self.adapter.call_ai(messages)
        except NotesError as e:
            logger.error(f"AI chat failed: {e.message}")
            raise

    def format(self, content: Optional[str]) -> str:
        """Rewrite Markdown layout; the model output is returned verbatim"""
        if not content or len(content.strip()) < 5:
            raise InvalidInput("Content is too short to format.")
        try:
            return self.adapter.call_ai(FORMAT_PROMPT.format(content=content))
        except NotesError as e:
            logger.error(f"AI format failed: {e.message}")
            raise
