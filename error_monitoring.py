"""
Logging setup and error monitoring for the notes service
"""

import json
import logging
import logging.handlers
import traceback
from collections import defaultdict, deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from config import Settings

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(settings: Settings) -> None:
    """Configure root logging: daily-rotated files plus console outside production."""
    settings.logs_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)

    root = logging.getLogger()
    root.setLevel(logging.INFO if settings.is_production else logging.DEBUG)
    for handler in list(root.handlers):
        if getattr(handler, "_notes_handler", False):
            root.removeHandler(handler)
            handler.close()

    handlers: List[logging.Handler] = []

    combined = logging.handlers.TimedRotatingFileHandler(
        settings.logs_dir / "combined.log", when="midnight", backupCount=14, encoding="utf-8"
    )
    combined.setLevel(logging.INFO)
    handlers.append(combined)

    errors = logging.handlers.TimedRotatingFileHandler(
        settings.logs_dir / "error.log", when="midnight", backupCount=14, encoding="utf-8"
    )
    errors.setLevel(logging.ERROR)
    handlers.append(errors)

    if not settings.is_production:
        console = logging.StreamHandler()
        console.setLevel(logging.DEBUG)
        handlers.append(console)

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._notes_handler = True
        root.addHandler(handler)


@dataclass
class ErrorEvent:
    timestamp: datetime
    error_type: str
    message: str
    component: str
    traceback: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    severity: str = "error"  # warning, error, critical


class ErrorMonitor:
    """Keeps recent errors in memory and appends them to a JSONL file"""

    def __init__(self, log_file: Optional[Path] = None):
        self.events = deque(maxlen=1000)  # Keep last 1000 errors
        self.error_counts = defaultdict(int)
        self.log_file = Path(log_file) if log_file else Path("logs/errors.jsonl")

    def capture_error(self,
                      error: Exception,
                      component: str,
                      context: Optional[Dict[str, Any]] = None,
                      severity: str = "error") -> ErrorEvent:
        """Capture and log an error event"""

        event = ErrorEvent(
            timestamp=datetime.now(),
            error_type=type(error).__name__,
            message=str(error),
            component=component,
            traceback="".join(traceback.format_exception(type(error), error, error.__traceback__)),
            context=context or {},
            severity=severity
        )

        self.events.append(event)
        self.error_counts[f"{component}:{event.error_type}"] += 1

        log_data = {
            "error_type": event.error_type,
            "message": event.message,
            "component": component,
            "context": event.context,
            "severity": severity
        }
        if severity == "critical":
            logger.critical(json.dumps(log_data, default=str))
        elif severity == "warning":
            logger.warning(json.dumps(log_data, default=str))
        else:
            logger.error(json.dumps(log_data, default=str))

        self._append(event)
        return event

    def _append(self, event: ErrorEvent) -> None:
        # Written synchronously so the entry survives a crash right after
        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with self.log_file.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(asdict(event), default=str) + "\n")
        except OSError as e:
            logger.error(f"Failed to write error log: {e}")

    def get_error_summary(self, hours: int = 24) -> Dict[str, Any]:
        """Get error summary for the last N hours"""
        cutoff = datetime.now() - timedelta(hours=hours)
        recent_events = [e for e in self.events if e.timestamp > cutoff]

        by_component = defaultdict(int)
        by_error_type = defaultdict(int)
        for event in recent_events:
            by_component[event.component] += 1
            by_error_type[event.error_type] += 1

        return {
            "total_errors": len(recent_events),
            "by_component": dict(by_component),
            "by_error_type": dict(by_error_type),
            "period_hours": hours
        }

    def get_recent_errors(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Get recent error events"""
        recent = list(self.events)[-limit:]
        return [asdict(event) for event in reversed(recent)]

    def health_check(self) -> Dict[str, Any]:
        now = datetime.now()
        last_hour = now - timedelta(hours=1)

        recent_critical = len([
            e for e in self.events
            if e.timestamp > last_hour and e.severity == "critical"
        ])
        recent_errors = len([
            e for e in self.events
            if e.timestamp > last_hour and e.severity == "error"
        ])

        status = "healthy"
        if recent_critical > 0:
            status = "critical"
        elif recent_errors > 10:
            status = "unhealthy"
        elif recent_errors > 3:
            status = "degraded"

        return {
            "status": status,
            "critical_errors_last_hour": recent_critical,
            "errors_last_hour": recent_errors,
            "total_events": len(self.events),
            "timestamp": now.isoformat()
        }
