import base64
import re
import time
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright
from structlog import get_logger

from app.config import settings
from app.constants import ALLOWED_LOGO_TYPES, PROPERTY_TYPE_LABELS
from app.schemas.content import AIContent
from app.schemas.dossier import PhotoUpload, PropertySubmission
from app.schemas.pdf import AIContentInput, Customizations, PdfPerformance, PdfPropertyData
from app.services.formatting import format_area, format_french_date, format_price
from app.services.templating import templates

logger = get_logger()

TEMPLATE_PRESETS = {
    "modern": {
        "colors": {"primary": "#3498db", "secondary": "#2c3e50", "accent": "#667eea"},
        "font_family": "'Helvetica Neue', Helvetica, Arial, sans-serif",
        "style": "clean",
    },
    "classic": {
        "colors": {"primary": "#8B7355", "secondary": "#2F4F4F", "accent": "#DAA520"},
        "font_family": "'Georgia', 'Times New Roman', serif",
        "style": "traditional",
    },
    "luxury": {
        "colors": {"primary": "#FFD700", "secondary": "#000000", "accent": "#C9A961"},
        "font_family": "'Playfair Display', 'Georgia', serif",
        "style": "elegant",
    },
    "corporate": {
        "colors": {"primary": "#34495e", "secondary": "#2c3e50", "accent": "#3498db"},
        "font_family": "'Roboto', 'Arial', sans-serif",
        "style": "professional",
    },
    "eco": {
        "colors": {"primary": "#27ae60", "secondary": "#2c3e50", "accent": "#16a085"},
        "font_family": "'Open Sans', 'Helvetica', sans-serif",
        "style": "sustainable",
    },
}

PLACEHOLDER_IMAGE = (
    "data:image/svg+xml;base64,PHN2ZyB3aWR0aD0iODAwIiBoZWlnaHQ9IjQwMCIgeG1sbnM9Imh0dHA6Ly93d3cudzMub3Jn"
    "LzIwMDAvc3ZnIj48cmVjdCB3aWR0aD0iODAwIiBoZWlnaHQ9IjQwMCIgZmlsbD0iI2VlZSIvPjx0ZXh0IHRleHQtYW5jaG9y"
    "PSJtaWRkbGUiIHg9IjQwMCIgeT0iMjAwIiBzdHlsZT0iZmlsbDojYWFhO2ZvbnQtd2VpZ2h0OmJvbGQ7Zm9udC1zaXplOjUw"
    "cHg7Zm9udC1mYW1pbHk6QXJpYWwsSGVsdmV0aWNhLHNhbnMtc2VyaWY7ZG9taW5hbnQtYmFzZWxpbmU6Y2VudHJhbCI+UGhv"
    "dG8gbm9uIGRpc3BvbmlibGU8L3RleHQ+PC9zdmc+"
)

_DATA_URL = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)


class InvalidLogoError(ValueError):
    pass


class PdfRenderError(Exception):
    pass


class PdfTimeoutError(PdfRenderError):
    pass


@dataclass
class PdfResult:
    pdf: bytes
    filename: str
    performance: PdfPerformance = field(default_factory=PdfPerformance)


def validate_logo_data(logo: Optional[str]) -> Optional[str]:
    """Accept only base64 image data URLs of an allowed type and size."""
    if not logo:
        return None
    if not logo.startswith("data:"):
        return None
    match = _DATA_URL.match(logo)
    if not match:
        raise InvalidLogoError("Invalid logo data format")
    mime_type, payload = match.groups()
    if mime_type not in ALLOWED_LOGO_TYPES:
        raise InvalidLogoError(f"Invalid image type: {mime_type}. Allowed types: {', '.join(ALLOWED_LOGO_TYPES)}")
    if len(payload) * 3 / 4 > settings.PDF_MAX_LOGO_BYTES:
        raise InvalidLogoError(f"Logo file too large. Maximum size: {settings.PDF_MAX_LOGO_BYTES // (1024 * 1024)}MB")
    return logo


def build_template_context(property_data: PdfPropertyData, ai_content: Optional[AIContentInput] = None) -> dict:
    photos = property_data.photos[: settings.MAX_PHOTOS]
    social = (ai_content.social_media if ai_content else None) or {}
    return {
        "property_type": property_data.property_type or "Propriété",
        "address": property_data.address,
        "price": format_price(property_data.price),
        "surface": format_area(property_data.surface) or "0",
        "rooms": property_data.rooms or "0",
        "bedrooms": property_data.bedrooms or "0",
        "bathrooms": property_data.bathrooms or "0",
        "year_built": property_data.year_built or "",
        "heating_type": property_data.heating_type or "",
        "energy_class": property_data.energy_class or "",
        "ghg_class": property_data.ghg_class or "",
        "highlights": property_data.highlights,
        "description": property_data.description or "",
        "photos": photos,
        "hero_image": photos[0] if photos else PLACEHOLDER_IMAGE,
        "agent_name": property_data.agent_name or "",
        "agent_phone": property_data.agent_phone or "",
        "agent_email": property_data.agent_email or "",
        "agency_name": property_data.agency_name or "",
        "generation_date": property_data.generation_date or format_french_date(date.today()),
        "ai_narrative": (ai_content.narrative if ai_content else None) or "Description à venir...",
        "ai_social": {k: social[k] for k in ("facebook", "instagram", "linkedin") if social.get(k)},
    }


def render_dossier_html(context: dict, customizations: Customizations) -> str:
    preset = TEMPLATE_PRESETS[customizations.template]
    colors = {**preset["colors"], **customizations.colors.model_dump(exclude_none=True)}
    template = templates.get_template("dossier.html")
    return template.render(
        **context,
        colors=colors,
        font_family=preset["font_family"],
        style=preset["style"],
        logo=customizations.logo or "",
        layout=customizations.layout,
    )


async def html_to_pdf(html: str, performance: PdfPerformance) -> bytes:
    """Print ``html`` to an A4 PDF with headless Chromium."""
    try:
        async with async_playwright() as p:
            started = time.perf_counter()
            browser = await p.chromium.launch(headless=True, args=["--no-sandbox", "--disable-setuid-sandbox"])
            try:
                page = await browser.new_page()
                performance.browser_launch_time = int((time.perf_counter() - started) * 1000)
                await page.set_content(html, wait_until="networkidle", timeout=settings.PDF_CONTENT_TIMEOUT_MS)
                await page.wait_for_timeout(settings.PDF_SETTLE_MS)
                started = time.perf_counter()
                pdf = await page.pdf(
                    format="A4",
                    print_background=True,
                    display_header_footer=False,
                    margin={"top": "0mm", "right": "0mm", "bottom": "0mm", "left": "0mm"},
                )
                performance.pdf_generation_time = int((time.perf_counter() - started) * 1000)
                return pdf
            finally:
                await browser.close()
    except PlaywrightTimeoutError as e:
        raise PdfTimeoutError(str(e)) from e
    except Exception as e:
        raise PdfRenderError(str(e)) from e


async def render_dossier_pdf(
    property_data: PdfPropertyData,
    customizations: Optional[Customizations] = None,
    ai_content: Optional[AIContentInput] = None,
) -> PdfResult:
    customizations = customizations or Customizations()
    performance = PdfPerformance()
    started = time.perf_counter()

    html = render_dossier_html(build_template_context(property_data, ai_content), customizations)
    performance.html_generation_time = int((time.perf_counter() - started) * 1000)

    pdf = await html_to_pdf(html, performance)
    performance.total_time = int((time.perf_counter() - started) * 1000)
    logger.info(
        "PDF generated",
        template=customizations.template,
        photo_count=len(property_data.photos),
        has_logo=bool(customizations.logo),
        has_ai=bool(ai_content and ai_content.narrative),
        total_time=performance.total_time,
    )
    return PdfResult(pdf=pdf, filename=f"dossier-{int(time.time() * 1000)}.pdf", performance=performance)


def photo_data_url(photo: PhotoUpload) -> str:
    return f"data:{photo.mimetype};base64,{base64.b64encode(photo.content).decode('ascii')}"


def dossier_from_submission(
    submission: PropertySubmission,
    photos: List[PhotoUpload],
    ai_content: Optional[AIContent] = None,
) -> tuple[PdfPropertyData, Optional[AIContentInput]]:
    """Map an intake submission onto the template fields."""
    highlights = [line.strip(" -•\t") for line in re.split(r"[\n;]", submission.key_points or "")]
    property_data = PdfPropertyData(
        property_type=PROPERTY_TYPE_LABELS[submission.property_type],
        address=submission.address,
        price=submission.price,
        surface=format_area(submission.living_area) or None,
        rooms=submission.room_count,
        year_built=submission.construction_year,
        highlights=[h for h in highlights if h],
        description=submission.property_description,
        photos=[photo_data_url(p) for p in photos],
        agent_email=submission.agent_email,
    )
    ai_input = None
    if ai_content is not None:
        ai_input = AIContentInput(narrative=ai_content.narrative, social_media=ai_content.social_media.model_dump())
    return property_data, ai_input
