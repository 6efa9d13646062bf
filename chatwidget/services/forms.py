import html
import logging
from datetime import datetime, timezone
from email.utils import formataddr
from typing import Any, Dict, List, Optional

from ..config import get_settings
from ..models import ChatbotConfig
from . import email_utils

logger = logging.getLogger(__name__)
_settings = get_settings()

DEFAULT_CONFIRMATION = "Thank you! Your message has been sent successfully. We will contact you soon."
DELIVERY_FAILED = (
    "Sorry, there was an error sending your message. Please try again later or contact us directly."
)


def _field_rows(form_data: List[Dict[str, Any]]) -> List[tuple[str, str]]:
    rows = []
    for item in form_data:
        if not isinstance(item, dict):
            continue
        label = str(item.get("label") or item.get("id") or "Field")
        rows.append((label, str(item.get("value") or "")))
    return rows


def _reply_to(form_data: List[Dict[str, Any]]) -> Optional[str]:
    for item in form_data:
        if isinstance(item, dict) and "@" in str(item.get("value") or ""):
            label = str(item.get("label") or item.get("id") or "").lower()
            if "mail" in label:
                return str(item["value"]).strip()
    return None


def send_form_submission(
    chatbot: ChatbotConfig,
    session_id: str,
    form_data: List[Dict[str, Any]],
    form_title: Optional[str] = None,
) -> bool:
    """Email a widget contact form to the chatbot's configured recipient."""

    title = form_title or "Contact form"
    submitted_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    rows = _field_rows(form_data)

    text_lines = [f"New {title} submission from {chatbot.name}", ""]
    text_lines.extend(f"{label}: {value}" for label, value in rows)
    text_lines.extend(["", f"Session: {session_id}", f"Submitted: {submitted_at}"])

    html_rows = "".join(
        f"<tr><th align='left'>{html.escape(label)}</th><td>{html.escape(value)}</td></tr>"
        for label, value in rows
    )
    html_body = (
        f"<h2>New {html.escape(title)} submission</h2>"
        f"<p>Chatbot: {html.escape(chatbot.name)}</p>"
        f"<table>{html_rows}</table>"
        f"<p><small>Session {html.escape(session_id)} &middot; {submitted_at}</small></p>"
    )

    recipient = chatbot.form_recipient_email
    if recipient and chatbot.form_recipient_name:
        recipient = formataddr((chatbot.form_recipient_name, recipient))
    logger.info("Form submission | chatbot=%s session=%s fields=%s", chatbot.guid, session_id, len(rows))
    return email_utils.send_email(
        f"{title} - {chatbot.name}",
        "\n".join(text_lines),
        to_list=[recipient] if recipient else [],
        html_body=html_body,
        reply_to=_reply_to(form_data),
        from_name=chatbot.sender_name,
    )


def contact_recipient(contact_type: str) -> Optional[str]:
    if contact_type == "sales":
        return _settings.contact_sales_email or _settings.contact_support_email
    return _settings.contact_support_email or _settings.contact_sales_email


def send_contact_request(
    contact_type: str,
    name: str,
    email: str,
    message: str,
    company: Optional[str] = None,
) -> bool:
    recipient = contact_recipient(contact_type)
    if not recipient:
        logger.warning("No %s contact recipient configured", contact_type)
        return False
    body_lines = [
        f"Contact type: {contact_type}",
        f"Name: {name}",
        f"Email: {email}",
    ]
    if company:
        body_lines.append(f"Company: {company}")
    body_lines.extend(["", message])
    return email_utils.send_email(
        f"New {contact_type} inquiry from {name}",
        "\n".join(body_lines),
        to_list=[recipient],
        reply_to=email,
    )
