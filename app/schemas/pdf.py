from typing import Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TemplateName = Literal["modern", "classic", "luxury", "corporate", "eco"]
HEX_COLOR = r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$"

_camel = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ColorOverrides(BaseModel):
    primary: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    secondary: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    accent: Optional[str] = Field(default=None, pattern=HEX_COLOR)


class LayoutOptions(BaseModel):
    model_config = _camel

    photo_style: Literal["grid", "list"] = "grid"
    photo_columns: int = Field(default=2, ge=1, le=4)
    show_agent: bool = True
    show_social: bool = True
    show_ai: bool = Field(default=True, validation_alias=AliasChoices("showAI", "showAi", "show_ai"))


class Customizations(BaseModel):
    template: TemplateName = "modern"
    colors: ColorOverrides = Field(default_factory=ColorOverrides)
    logo: Optional[str] = None
    layout: LayoutOptions = Field(default_factory=LayoutOptions)


class PdfPropertyData(BaseModel):
    """Property fields accepted by the dossier template.

    Several fields accept both the form name and the short template name
    (``livingArea`` or ``surface``, ``roomCount`` or ``rooms``...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    property_type: Optional[str] = None
    address: str = ""
    price: Optional[Union[str, float]] = None
    surface: Optional[Union[str, float]] = Field(default=None, validation_alias=AliasChoices("surface", "livingArea"))
    rooms: Optional[Union[str, int]] = Field(default=None, validation_alias=AliasChoices("rooms", "roomCount"))
    bedrooms: Optional[Union[str, int]] = Field(default=None, validation_alias=AliasChoices("bedrooms", "bedroomCount"))
    bathrooms: Optional[Union[str, int]] = Field(default=None, validation_alias=AliasChoices("bathrooms", "bathroomCount"))
    year_built: Optional[Union[str, int]] = Field(default=None, validation_alias=AliasChoices("yearBuilt", "constructionYear"))
    heating_type: Optional[str] = None
    energy_class: Optional[str] = None
    ghg_class: Optional[str] = None
    highlights: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    photos: List[str] = Field(default_factory=list)
    agent_name: Optional[str] = None
    agent_phone: Optional[str] = None
    agent_email: Optional[str] = None
    agency_name: Optional[str] = None
    generation_date: Optional[str] = None


class AIContentInput(BaseModel):
    model_config = _camel

    narrative: Optional[str] = None
    social_media: Optional[Dict[str, str]] = None


class GeneratePdfRequest(BaseModel):
    model_config = _camel

    property_data: Optional[PdfPropertyData] = None
    customizations: Customizations = Field(default_factory=Customizations)
    ai_content: AIContentInput = Field(default_factory=AIContentInput)

    @field_validator("customizations", "ai_content", mode="before")
    @classmethod
    def _null_as_default(cls, v):
        return {} if v is None else v


class PdfPerformance(BaseModel):
    model_config = _camel

    validation_time: int = 0
    html_generation_time: int = 0
    browser_launch_time: int = 0
    pdf_generation_time: int = 0
    total_time: int = 0


class GeneratePdfResponse(BaseModel):
    success: bool = True
    pdf: str
    performance: PdfPerformance
    filename: str
