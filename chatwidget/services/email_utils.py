import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional, Sequence

from ..config import get_settings

logger = logging.getLogger(__name__)
_settings = get_settings()


def email_configured() -> bool:
    return bool(_settings.smtp_host and _settings.smtp_from_email)


def send_email(
    subject: str,
    body: str,
    *,
    to_list: Sequence[str] | None = None,
    html_body: Optional[str] = None,
    reply_to: Optional[str] = None,
    from_name: Optional[str] = None,
) -> bool:
    """Send an email through the configured SMTP relay. Returns False instead of raising."""

    if not email_configured():
        logger.warning("SMTP settings incomplete; skipping email send for subject '%s'", subject)
        return False

    to = [addr for addr in (to_list or []) if addr]
    if not to:
        logger.warning("No recipients provided for subject '%s'", subject)
        return False

    message = EmailMessage()
    message["From"] = formataddr((from_name or _settings.smtp_from_name, _settings.smtp_from_email))
    message["To"] = ", ".join(to)
    message["Subject"] = subject
    if reply_to:
        message["Reply-To"] = reply_to
    message.set_content(body)
    if html_body:
        message.add_alternative(html_body, subtype="html")

    try:
        with smtplib.SMTP(_settings.smtp_host, _settings.smtp_port, timeout=15) as client:
            if _settings.smtp_use_tls:
                client.starttls()
            if _settings.smtp_username and _settings.smtp_password:
                client.login(_settings.smtp_username, _settings.smtp_password.get_secret_value())
            client.send_message(message)
        logger.info("Sent email subject='%s' to=%s", subject, to)
        return True
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to send email subject='%s': %s", subject, exc)
        return False
