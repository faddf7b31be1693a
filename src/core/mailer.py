"""
Outbound e-mail for one-time codes.

Sends through SMTP when QUSCINA_SMTP_HOST and a sender address are
configured; otherwise logs a redacted dev-mode line. Send errors are raised
as MailError so the caller can decide they are not fatal.
"""
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from src.core.config import MailSettings
from src.core.logger import get_logger, redact_email

logger = get_logger(__name__)


class MailError(RuntimeError):
    pass


class Mailer:
    def __init__(self, settings: MailSettings):
        self.settings = settings

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.smtp_host and (self.settings.from_email or self.settings.smtp_user))

    def _send(self, to_email: str, subject: str, text_body: str, html_body: str) -> None:
        if not self.is_configured:
            logger.info(f"[dev-mail] to={redact_email(to_email)} subject={subject!r}")
            return

        sender = self.settings.from_email or self.settings.smtp_user
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.settings.app_name} <{sender}>"
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=10) as server:
                if self.settings.smtp_use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.settings.smtp_user and self.settings.smtp_password:
                    server.login(self.settings.smtp_user, self.settings.smtp_password)
                server.sendmail(sender, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise MailError(f"SMTP send failed: {exc}") from exc

        logger.info(f"Mail sent to {redact_email(to_email)}")

    def send_otp(self, to_email: str, code: str, expires_minutes: int) -> None:
        app_name = self.settings.app_name
        subject = f"{app_name} verification code"
        text_body = (
            f"Your {app_name} verification code is {code}.\n"
            f"It expires in {expires_minutes} minutes. "
            "If you did not request it, you can ignore this e-mail."
        )
        html_body = (
            f"<p>Your {app_name} verification code is <strong>{code}</strong>.</p>"
            f"<p>It expires in {expires_minutes} minutes. "
            "If you did not request it, you can ignore this e-mail.</p>"
        )
        self._send(to_email, subject, text_body, html_body)
