"""Administrator email notifications over SMTP with STARTTLS."""

import smtplib
from email.mime.text import MIMEText
from typing import Optional, Sequence

from pushtrello.logging_config import get_logger

logger = get_logger(__name__)


class EmailNotifier:

    def __init__(self, host: Optional[str], port: int = 587, user: Optional[str] = None,
                 password: Optional[str] = None, sender: str = "pushtrello <noreply@localhost>",
                 timeout: float = 15):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.host)

    def format_message(self, recipients: Sequence[str], subject: str, body: str) -> MIMEText:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = ", ".join(recipients)
        return msg

    def send(self, recipients: Sequence[str], subject: str, body: str) -> bool:
        """Send a plain-text email. Returns False (after logging) when it could not be sent."""
        recipients = [r for r in recipients if r]
        if not recipients:
            logger.warning("No admin recipients configured, email not sent", subject=subject)
            return False
        if not self.is_configured:
            logger.warning("SMTP_HOST not set, email not sent", subject=subject)
            return False

        msg = self.format_message(recipients, subject, body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.sendmail(self.sender, recipients, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Couldn't send email", error=str(e), subject=subject)
            return False

        logger.info("Email sent", subject=subject, recipients=len(recipients))
        return True
