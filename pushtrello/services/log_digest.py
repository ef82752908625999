import html
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from pushtrello.logging_config import get_logger
from pushtrello.services.system_log_service import SystemLogService

logger = get_logger(__name__)

DIGEST_SUBJECT = "System Notification"


@dataclass
class Digest:
    lines: List[str]
    emailed: bool

    @property
    def text(self) -> str:
        return "".join(line + "\n" for line in self.lines)

    def render_html(self) -> str:
        return f"<HTML><BODY><PRE>{html.escape(self.text)}</PRE></BODY>"


class LogDigestService:
    """Collects recent errors from the system log and emails them to the admins."""

    def __init__(self, notifier, recipients: Sequence[str], window_hours: int = 2, min_level: str = "ERROR"):
        self.notifier = notifier
        self.recipients = list(recipients)
        self.window = timedelta(hours=window_hours)
        self.min_level = min_level

    def collect(self, now: Optional[datetime] = None) -> List[str]:
        entries = SystemLogService.recent(min_level=self.min_level, window=self.window, now=now)
        return [entry.as_line() for entry in entries]

    def run(self, now: Optional[datetime] = None) -> Digest:
        """Build the digest and email it when there is anything to report."""
        lines = self.collect(now)
        emailed = False
        if lines:
            emailed = self.notifier.send(self.recipients, DIGEST_SUBJECT, "\n".join(lines))
            logger.info("Log digest built", entries=len(lines), emailed=emailed)
        return Digest(lines=lines, emailed=emailed)
