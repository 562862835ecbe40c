import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from meetingroom.exceptions import MailDeliveryError
from meetingroom.models.email_settings import EmailSettings

logger = logging.getLogger(__name__)


def get_email_settings(db: Session) -> Optional[EmailSettings]:
    return db.query(EmailSettings).order_by(EmailSettings.id).first()


class Mailer:
    """SMTP sender configured from the stored email settings."""

    def __init__(self, settings: EmailSettings, timeout: int = 20):
        # copied so the mailer outlives the session that loaded the settings
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.from_email = settings.from_email
        self.from_name = settings.from_name
        self.timeout = timeout

    def build_message(
        self,
        recipients: Iterable[str],
        subject: str,
        html_body: str,
        ics: Optional[str] = None,
        ics_filename: str = "invite.ics",
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f'"{self.from_name}" <{self.from_email}>'
        msg["To"] = ", ".join(recipients)
        msg.set_content("This message requires an HTML capable email client.")
        msg.add_alternative(html_body, subtype="html")
        if ics:
            msg.add_attachment(
                ics.encode("utf-8"),
                maintype="text",
                subtype="calendar",
                filename=ics_filename,
                params={"method": "REQUEST"},
            )
        return msg

    def send(self, recipients, subject: str, html_body: str, ics: Optional[str] = None,
             ics_filename: str = "invite.ics") -> None:
        recipients = [r for r in recipients if r]
        if not recipients:
            return
        msg = self.build_message(recipients, subject, html_body, ics, ics_filename)
        host, port = self.host, self.port
        try:
            if port == 465:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(host, port, context=context, timeout=self.timeout) as server:
                    server.login(self.username, self.password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(host, port, timeout=self.timeout) as server:
                    server.starttls(context=ssl.create_default_context())
                    server.login(self.username, self.password)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"Sending to {', '.join(recipients)} failed: {e}") from e
        logger.info(f"Sent '{subject}' to {len(recipients)} recipient(s)")


def mailer_for(db: Session, feature: str) -> Optional[Mailer]:
    """Mailer when settings exist and ``feature`` (e.g. ``enable_reminders``) is on."""
    settings = get_email_settings(db)
    if settings is None or not getattr(settings, feature):
        return None
    return Mailer(settings)


def send_quietly(mailer: Optional[Mailer], recipients, subject: str, html_body: str,
                 ics: Optional[str] = None) -> bool:
    """Send and log a delivery failure instead of raising; returns whether it was sent."""
    if mailer is None:
        logger.debug(f"Email settings missing, not sending '{subject}'")
        return False
    try:
        mailer.send(recipients, subject, html_body, ics=ics)
    except MailDeliveryError as e:
        logger.error(f"Email delivery failed: {e}")
        return False
    return True
