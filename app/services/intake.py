from typing import List, Tuple

from fastapi import Request
from pydantic import ValidationError
from starlette.datastructures import UploadFile
from structlog import get_logger

from app.config import settings
from app.constants import ALLOWED_PHOTO_TYPES, REQUIRED_FIELDS, OPTIONAL_FIELDS, PropertyType, TargetBuyer
from app.errors import ApiError
from app.schemas.dossier import PhotoUpload, PropertySubmission, is_valid_email

logger = get_logger()

PHOTO_FIELD = "photos"
FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def _read_form(request: Request):
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith(FORM_CONTENT_TYPES):
        raise ApiError(400, "Échec de l'analyse des données du formulaire")
    try:
        return await request.form()
    except Exception as e:
        logger.warning("Multipart parsing failed", error=str(e))
        raise ApiError(400, "Échec de l'analyse des données du formulaire")


def validate_fields(fields: dict) -> PropertySubmission:
    """Run the field checks in order and stop at the first failure."""
    missing = [name for name in REQUIRED_FIELDS if not str(fields.get(name) or "").strip()]
    if missing:
        raise ApiError(400, "Champs obligatoires manquants", missingFields=missing)

    if not is_valid_email(fields["agentEmail"].strip()):
        raise ApiError(400, "Format d'email invalide")

    property_type = PropertyType.parse(fields["propertyType"])
    if property_type is None:
        raise ApiError(400, "Type de bien invalide", validTypes=[t.value for t in PropertyType])

    if fields["targetBuyer"].strip() not in [b.value for b in TargetBuyer]:
        raise ApiError(400, "Acheteur cible invalide", validTypes=[b.value for b in TargetBuyer])

    data = {name: fields[name] for name in REQUIRED_FIELDS + OPTIONAL_FIELDS if name in fields}
    data["propertyType"] = property_type
    data["targetBuyer"] = fields["targetBuyer"].strip()
    try:
        return PropertySubmission.model_validate(data)
    except ValidationError as e:
        invalid = []
        for err in e.errors():
            name = str(err["loc"][0]) if err.get("loc") else ""
            if name and name not in invalid:
                invalid.append(name)
        raise ApiError(400, "Valeur invalide", fields=invalid)


async def validate_photos(uploads: List[Tuple[str, UploadFile]]) -> List[PhotoUpload]:
    for field_name, _ in uploads:
        if field_name != PHOTO_FIELD:
            raise ApiError(400, "Champ de fichier inattendu", field=field_name)

    if len(uploads) > settings.MAX_PHOTOS:
        raise ApiError(413, f"Trop de fichiers. Maximum {settings.MAX_PHOTOS} fichiers autorisés.")

    photos = []
    for _, upload in uploads:
        mimetype = (upload.content_type or "").lower()
        if mimetype not in ALLOWED_PHOTO_TYPES:
            raise ApiError(
                415,
                "Type de média non supporté",
                file=upload.filename,
                allowedTypes=ALLOWED_PHOTO_TYPES,
            )
        content = await upload.read()
        if len(content) > settings.MAX_PHOTO_SIZE_BYTES:
            max_mb = settings.MAX_PHOTO_SIZE_BYTES // (1024 * 1024)
            raise ApiError(413, f"La taille du fichier dépasse le maximum autorisé ({max_mb} Mo)", file=upload.filename)
        photos.append(PhotoUpload(filename=upload.filename, mimetype=mimetype, size=len(content), content=content))
    return photos


async def parse_submission(request: Request) -> Tuple[PropertySubmission, List[PhotoUpload]]:
    form = await _read_form(request)
    try:
        fields = {}
        uploads = []
        for name, value in form.multi_items():
            if isinstance(value, UploadFile):
                # browsers post an empty part for an untouched file input
                if not value.filename and not value.size:
                    continue
                uploads.append((name, value))
            elif name not in fields:
                fields[name] = value

        submission = validate_fields(fields)
        photos = await validate_photos(uploads)
    finally:
        await form.close()

    logger.info(
        "Dossier submission validated",
        agent_email=submission.agent_email,
        property_type=submission.property_type.value,
        photo_count=len(photos),
    )
    return submission, photos
