from fastapi import APIRouter, Depends
from structlog import get_logger

from app.dependencies.request import get_client_ip
from app.routers.dossier import rate_limited
from app.schemas.content import AIContent
from app.schemas.dossier import PropertySubmission
from app.services.ai_content import RateLimitExceeded, content_generator

logger = get_logger()
router = APIRouter(prefix="/api", tags=["content"])


@router.post("/content", response_model=AIContent, response_model_by_alias=True)
async def generate_content(submission: PropertySubmission, client_ip: str = Depends(get_client_ip)):
    """Marketing copy for a property without the PDF and email steps."""
    try:
        content = await content_generator.generate(submission, client_ip)
    except RateLimitExceeded as e:
        raise rate_limited(e)
    logger.info("Served property content", cached=content.cached, fallback=content.fallback)
    return content
