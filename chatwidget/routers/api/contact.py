import logging

from fastapi import APIRouter, HTTPException

from ...schemas import ContactRequest
from ...services.forms import send_contact_request

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("")
def contact(payload: ContactRequest):
    sent = send_contact_request(
        payload.contact_type,
        payload.name,
        str(payload.email),
        payload.message,
        company=payload.company,
    )
    if not sent:
        logger.error("Contact request could not be delivered | type=%s", payload.contact_type)
        raise HTTPException(status_code=500, detail="Failed to send message. Please try again later.")
    return {"success": True, "message": "Thank you for your message. We will get back to you soon."}
