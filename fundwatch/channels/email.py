"""
SMTP Email Sender (async, via aiosmtplib).
"""

from email.mime.text import MIMEText

import aiosmtplib
import structlog

from fundwatch.config import Settings
from fundwatch.exceptions import DispatchError

logger = structlog.get_logger(__name__)


class SmtpEmailSender:
    """Sends plain-text alert emails over STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        from_email: str = "alerts@truefam.app",
    ):
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._from_email = from_email

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpEmailSender":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            from_email=settings.smtp_from_email,
        )

    async def send(self, recipients: list[str], subject: str, body: str) -> None:
        if not recipients:
            raise DispatchError("email", "No recipient emails")

        msg = MIMEText(body)
        msg["Subject"] = subject
        msg["From"] = self._from_email
        msg["To"] = ", ".join(recipients)

        try:
            await aiosmtplib.send(
                msg,
                hostname=self._host,
                port=self._port,
                username=self._username or None,
                password=self._password or None,
                start_tls=True,
            )
        except aiosmtplib.SMTPException as e:
            raise DispatchError("email", str(e)) from e

        logger.info("email_sent", to=recipients, subject=subject)
