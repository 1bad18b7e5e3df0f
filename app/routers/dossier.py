from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from structlog import get_logger

from app.config import settings
from app.dependencies.request import get_client_ip
from app.errors import ApiError
from app.schemas.dossier import DossierData, DossierResponse
from app.services.ai_content import RateLimitExceeded, content_generator
from app.services.email import send_confirmation_email
from app.services.intake import parse_submission
from app.services.pdf import dossier_from_submission, render_dossier_pdf

logger = get_logger()
router = APIRouter(prefix="/api", tags=["dossier"])


def rate_limited(e: RateLimitExceeded) -> ApiError:
    return ApiError(
        429,
        "Trop de demandes. Veuillez réessayer plus tard.",
        headers={"Retry-After": str(e.retry_after)},
        retryAfter=e.retry_after,
    )


def internal_error(e: Exception) -> ApiError:
    if settings.ENVIRONMENT == "development":
        return ApiError(500, f"Erreur interne du serveur: {e}")
    return ApiError(500, "Erreur interne du serveur")


@router.post("/dossier", status_code=201, response_model=DossierResponse)
async def submit_dossier(request: Request, client_ip: str = Depends(get_client_ip)):
    """Validate a submission, then generate copy, render the PDF and confirm by email."""
    try:
        submission, photos = await parse_submission(request)
        warnings = []

        ai_content = None
        ai_error = None
        if content_generator.enabled:
            try:
                ai_content = await content_generator.generate(submission, client_ip)
            except RateLimitExceeded as e:
                raise rate_limited(e)
            except Exception as e:
                logger.error("AI content generation failed", error=str(e))
                ai_error = str(e)

        pdf = None
        pdf_error = None
        if settings.DOSSIER_GENERATE_PDF:
            try:
                property_data, ai_input = dossier_from_submission(submission, photos, ai_content)
                pdf = await render_dossier_pdf(property_data, ai_content=ai_input)
            except Exception as e:
                logger.error("Dossier PDF generation failed", error=str(e))
                pdf_error = str(e)
                warnings.append("Le dossier PDF n'a pas pu être généré")

        attachment = pdf if settings.DOSSIER_ATTACH_PDF else None
        email = await send_confirmation_email(
            submission,
            len(photos),
            pdf=attachment.pdf if attachment else None,
            pdf_filename=attachment.filename if attachment else None,
        )
        if not email.success:
            warnings.append("L'email de confirmation n'a pas pu être envoyé")

        logger.info(
            "Dossier processed",
            agent_email=submission.agent_email,
            photo_count=len(photos),
            ai=ai_content is not None,
            pdf=pdf is not None,
            email_sent=email.success,
        )
        response = DossierResponse(
            message="Dossier reçu avec succès",
            timestamp=datetime.now(timezone.utc).isoformat(),
            data=DossierData(**submission.model_dump(), photo_count=len(photos)),
            ai_content=ai_content,
            ai_generation_error=ai_error,
            pdf_generated=pdf is not None,
            pdf_filename=pdf.filename if pdf else None,
            pdf_error=pdf_error,
            email_sent=email.success,
            email_error=email.error,
            warnings=warnings,
        )
        return JSONResponse(status_code=201, content=response.model_dump(mode="json", by_alias=True))
    except ApiError:
        raise
    except Exception as e:
        logger.error("Error processing dossier", error=str(e))
        raise internal_error(e)
