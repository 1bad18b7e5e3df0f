from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class GeneratedCopy(BaseModel):
    """Shape the model is asked to answer with."""

    narrative: str = Field(min_length=1)
    facebook: str = Field(min_length=1)
    instagram: str = Field(min_length=1)
    linkedin: str = Field(min_length=1)


class SocialMedia(BaseModel):
    facebook: str
    instagram: str
    linkedin: str


class RateLimitInfo(BaseModel):
    remaining: int
    reset: str


class AIContent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    narrative: str
    social_media: SocialMedia
    cached: bool = False
    fallback: bool = False
    generation_time: int = 0
    rate_limit: Optional[RateLimitInfo] = None
