import re
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.constants import PropertyType, TargetBuyer
from app.schemas.content import AIContent

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PRICE_PATTERN = r"^\d+(\.\d{1,2})?$"
MIN_CONSTRUCTION_YEAR = 1800


def is_valid_email(email: str | None) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email))


class PropertySubmission(BaseModel):
    """Property data as submitted by the agent, form and JSON alike."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    agent_email: str
    property_type: PropertyType
    address: str = Field(min_length=1)
    price: str = Field(pattern=PRICE_PATTERN)
    target_buyer: TargetBuyer
    room_count: Optional[int] = Field(default=None, ge=0)
    living_area: Optional[float] = Field(default=None, ge=0)
    construction_year: Optional[int] = None
    key_points: Optional[str] = Field(default=None, max_length=500)
    property_description: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("room_count", "living_area", "construction_year", "key_points", "property_description", mode="before")
    @classmethod
    def _blank_as_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("property_type", mode="before")
    @classmethod
    def _property_type_alias(cls, v):
        if isinstance(v, str):
            return PropertyType.parse(v) or v
        return v

    @field_validator("price", mode="before")
    @classmethod
    def _price_as_text(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return format(Decimal(str(v)).normalize(), "f") if isinstance(v, float) else str(v)
        return v.strip() if isinstance(v, str) else v

    @field_validator("agent_email")
    @classmethod
    def _check_email(cls, v: str) -> str:
        v = v.strip()
        if not is_valid_email(v):
            raise ValueError("Adresse e-mail invalide")
        return v

    @field_validator("construction_year")
    @classmethod
    def _check_year(cls, v: Optional[int]) -> Optional[int]:
        if v is None:
            return v
        if v < MIN_CONSTRUCTION_YEAR or v > datetime.now().year:
            raise ValueError("Année de construction invalide")
        return v

    @property
    def price_value(self) -> float:
        return float(self.price)


class PhotoUpload(BaseModel):
    filename: str
    mimetype: str
    size: int
    content: bytes = Field(repr=False)


class DossierData(PropertySubmission):
    photo_count: int = 0


class DossierResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    timestamp: str
    data: DossierData
    ai_content: Optional[AIContent] = None
    ai_generation_error: Optional[str] = None
    pdf_generated: bool = False
    pdf_filename: Optional[str] = None
    pdf_error: Optional[str] = None
    email_sent: bool = False
    email_error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
