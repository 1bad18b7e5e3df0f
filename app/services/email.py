import base64
from typing import Optional

from httpx import AsyncClient
from pydantic import BaseModel
from structlog import get_logger

from app.config import settings
from app.constants import PROPERTY_TYPE_LABELS, TARGET_BUYER_LABELS
from app.schemas.dossier import PropertySubmission, is_valid_email
from app.services.formatting import format_area, format_price
from app.services.templating import templates

logger = get_logger()

SUBJECT = "Confirmation de réception - Dossier immobilier"


class EmailResult(BaseModel):
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None


def validate_email(email: str | None) -> bool:
    return is_valid_email(email)


def _photo_label(photo_count: int) -> str:
    return f"{photo_count} photo{'s' if photo_count > 1 else ''}"


def _email_context(submission: PropertySubmission, photo_count: int, has_attachment: bool) -> dict:
    return {
        "property_type": PROPERTY_TYPE_LABELS[submission.property_type],
        "address": submission.address,
        "price": format_price(submission.price),
        "target_buyer": TARGET_BUYER_LABELS[submission.target_buyer],
        "room_count": submission.room_count,
        "living_area": format_area(submission.living_area),
        "construction_year": submission.construction_year,
        "key_points": submission.key_points,
        "description": submission.property_description,
        "photo_label": _photo_label(photo_count),
        "has_attachment": has_attachment,
        "sender_name": settings.EMAIL_FROM_NAME,
        "agent_email": submission.agent_email,
    }


def generate_email_html(submission: PropertySubmission, photo_count: int, has_attachment: bool = False) -> str:
    return templates.get_template("confirmation_email.html").render(
        **_email_context(submission, photo_count, has_attachment)
    )


def generate_email_text(submission: PropertySubmission, photo_count: int, has_attachment: bool = False) -> str:
    return templates.get_template("confirmation_email.txt").render(
        **_email_context(submission, photo_count, has_attachment)
    )


async def send_confirmation_email(
    submission: PropertySubmission,
    photo_count: int,
    pdf: Optional[bytes] = None,
    pdf_filename: Optional[str] = None,
) -> EmailResult:
    """Send the confirmation through Resend, with the dossier PDF attached if given.

    Failures are reported in the result instead of raised so the caller can
    still answer the submission.
    """
    if not settings.RESEND_API_KEY:
        logger.error("Failed to send email", error="RESEND_API_KEY is not configured")
        return EmailResult(success=False, error="RESEND_API_KEY is not configured")
    if not validate_email(submission.agent_email):
        return EmailResult(success=False, error="Invalid recipient email address")

    has_attachment = pdf is not None
    payload = {
        "from": f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM_ADDRESS}>",
        "to": [submission.agent_email],
        "subject": SUBJECT,
        "html": generate_email_html(submission, photo_count, has_attachment),
        "text": generate_email_text(submission, photo_count, has_attachment),
    }
    if has_attachment:
        payload["attachments"] = [{
            "filename": pdf_filename or "dossier.pdf",
            "content": base64.b64encode(pdf).decode("ascii"),
        }]

    url = f"{settings.RESEND_API_URL.rstrip('/')}/emails"
    try:
        async with AsyncClient(timeout=30.0) as client:
            resp = await client.post(
                url,
                headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
                json=payload,
            )
    except Exception as e:
        logger.error("Failed to send email", upstream=url, error=str(e))
        return EmailResult(success=False, error=str(e))

    if not 200 <= resp.status_code < 300:
        try:
            err = resp.json()
        except Exception:
            err = {"message": resp.text or "Upstream error"}
        message = err.get("message") if isinstance(err, dict) else None
        logger.warning("Email provider rejected message", upstream=url, status_code=resp.status_code, error=err)
        return EmailResult(success=False, error=message or f"Email provider error: {resp.status_code}")

    try:
        email_id = resp.json().get("id")
    except Exception:
        email_id = None
    logger.info("Email sent successfully", email_id=email_id, attachment=has_attachment)
    return EmailResult(success=True, id=email_id)
