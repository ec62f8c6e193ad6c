"""
Statistics Pydantic schemas.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BreakdownEntry(BaseModel):
    """One slice of a breakdown."""

    value: str
    count: int
    percentage: float = Field(..., description="Share of the breakdown's total, 0-100")


class SubjectStats(BaseModel):
    """
    Live tallies of a subject.

    Breakdowns are empty while the subject has fewer than
    ``min_votes_to_show_stats`` votes.
    """

    subject_id: int
    overall: int
    by_semantic_key: list[BreakdownEntry] = []
    by_region: list[BreakdownEntry] = []
    by_age_band: list[BreakdownEntry] = []
    by_gender: list[BreakdownEntry] = []
    by_time_bucket: list[BreakdownEntry] = []
    min_votes_to_show_stats: int
    breakdowns_hidden: bool

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "subject_id": 12,
                "overall": 8,
                "by_semantic_key": [
                    {"value": "heiban", "count": 6, "percentage": 75.0},
                    {"value": "atamadaka", "count": 2, "percentage": 25.0},
                ],
                "by_region": [{"value": "13", "count": 8, "percentage": 100.0}],
                "by_age_band": [],
                "by_gender": [],
                "by_time_bucket": [{"value": "2025-04-01T09:00Z", "count": 8, "percentage": 100.0}],
                "min_votes_to_show_stats": 5,
                "breakdowns_hidden": False,
            }
        }
    )


class RegionStats(BaseModel):
    """Semantic key split inside one prefecture."""

    subject_id: int
    region: str
    region_name: str
    total: int
    by_semantic_key: list[BreakdownEntry] = []
    breakdowns_hidden: bool


class PrefectureEntry(BaseModel):
    """One prefecture on a subject's map."""

    region: str
    region_name: str
    area: str
    total: int
    top: Optional[BreakdownEntry] = None
    by_semantic_key: list[BreakdownEntry] = []
    breakdowns_hidden: bool


class PrefectureMap(BaseModel):
    """Leading accent pattern of every prefecture that voted on a subject."""

    subject_id: int
    min_votes_to_show_stats: int
    prefectures: list[PrefectureEntry] = []


class SubjectVoteCount(BaseModel):
    subject_id: int
    label: str
    count: int


class PrefectureTrendStats(BaseModel):
    """What one prefecture votes on and how, across all subjects."""

    region: str
    region_name: str
    area: str
    total: int
    top_subjects: list[SubjectVoteCount] = []
    by_semantic_key: list[BreakdownEntry] = []
    breakdowns_hidden: bool
