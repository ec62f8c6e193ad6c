"""
Vote-related Pydantic schemas.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, StrictInt, field_validator

from core.demographics import is_prefecture_code

# Keep in step with core.demographics.AGE_BANDS / GENDERS
AgeBand = Literal["10s", "20s", "30s", "40s", "50s", "60s", "70s+"]
Gender = Literal["male", "female", "other", "prefer_not_to_say"]


class Fingerprint(BaseModel):
    """Device fingerprint collected by the client."""

    user_agent: str = Field(..., max_length=1000)
    screen_resolution: Optional[str] = Field(None, max_length=32)  # "1920x1080"
    timezone: Optional[str] = Field(None, max_length=64)  # "Asia/Tokyo"
    language: Optional[str] = Field(None, max_length=35)
    platform: Optional[str] = Field(None, max_length=64)


class Demographics(BaseModel):
    """Coarse, optional voter attributes used for statistics."""

    region: Optional[str] = Field(None, description="Prefecture code, 01-47")
    age_band: Optional[AgeBand] = None
    gender: Optional[Gender] = None

    @field_validator("region")
    @classmethod
    def validate_region(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not is_prefecture_code(v):
            raise ValueError("region must be a prefecture code between 01 and 47")
        return v


class VoteCreate(BaseModel):
    """
    Schema for casting a vote.

    Send exactly one of ``option_id`` (global option id), ``semantic_key``
    (key code such as "heiban") or the legacy ``option_ref``.
    """

    subject_id: int = Field(..., gt=0)
    option_ref: Optional[StrictInt] = None
    option_id: Optional[StrictInt] = None
    semantic_key: Optional[str] = Field(None, max_length=32)
    fingerprint: Optional[Fingerprint] = None
    demographics: Optional[Demographics] = None


class VoteResponse(BaseModel):
    """Response after successfully casting a vote."""

    vote_id: str
    subject_id: int
    option_id: int
    semantic_key: str


class VoteStatus(BaseModel):
    """Whether the current identity has voted on a subject."""

    subject_id: int
    has_voted: bool
    vote_id: Optional[str] = None


class VoteRecord(BaseModel):
    """A vote as shown in the voter's own history (identity omitted)."""

    id: str
    subject_id: int
    option_id: int
    semantic_key: str
    region: Optional[str] = None
    age_band: Optional[str] = None
    gender: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class VoteHistory(BaseModel):
    votes: list[VoteRecord]
    limit: int
    offset: int
    count: int
