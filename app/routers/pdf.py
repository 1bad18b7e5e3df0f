import base64
import json
import time

from fastapi import APIRouter, Request
from pydantic import ValidationError
from structlog import get_logger

from app.config import settings
from app.errors import ApiError
from app.schemas.pdf import GeneratePdfRequest, GeneratePdfResponse
from app.services.pdf import InvalidLogoError, PdfRenderError, PdfTimeoutError, render_dossier_pdf, validate_logo_data

logger = get_logger()
router = APIRouter(prefix="/api", tags=["pdf"])


@router.post("/generate-pdf", response_model=GeneratePdfResponse)
async def generate_pdf(request: Request):
    started = time.perf_counter()
    too_large = ApiError(413, "Request too large", maxSize=f"{settings.PDF_MAX_REQUEST_BYTES // (1024 * 1024)}MB")
    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > settings.PDF_MAX_REQUEST_BYTES:
        raise too_large
    # chunked bodies carry no Content-Length
    body = await request.body()
    if len(body) > settings.PDF_MAX_REQUEST_BYTES:
        raise too_large

    try:
        payload = GeneratePdfRequest.model_validate(json.loads(body or b"{}"))
    except (ValueError, ValidationError) as e:
        logger.warning("Invalid PDF request", error=str(e))
        raise ApiError(400, "Invalid request body")

    if payload.property_data is None:
        raise ApiError(400, "Property data is required")
    if len(payload.property_data.photos) > settings.MAX_PHOTOS:
        raise ApiError(400, "Too many photos", maxPhotos=settings.MAX_PHOTOS)
    try:
        payload.customizations.logo = validate_logo_data(payload.customizations.logo)
    except InvalidLogoError as e:
        raise ApiError(400, "Invalid logo data", details=str(e))
    validation_time = int((time.perf_counter() - started) * 1000)

    try:
        result = await render_dossier_pdf(payload.property_data, payload.customizations, payload.ai_content)
    except PdfTimeoutError as e:
        logger.error("PDF generation timed out", error=str(e))
        raise ApiError(504, "PDF generation timeout", message="La génération du PDF a pris trop de temps")
    except PdfRenderError as e:
        logger.error("PDF generation failed", error=str(e))
        if settings.ENVIRONMENT == "development":
            raise ApiError(500, "PDF generation failed", message=str(e))
        raise ApiError(500, "PDF generation failed")

    result.performance.validation_time = validation_time
    return GeneratePdfResponse(
        pdf=base64.b64encode(result.pdf).decode("ascii"),
        performance=result.performance,
        filename=result.filename,
    )
