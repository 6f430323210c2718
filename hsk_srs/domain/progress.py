"""
Progress snapshot schema.

Backup/restore format for learning progress, exchanged with the user as a
JSON file. Field names on the wire are camelCase; Python attributes are
snake_case.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .vocabulary import VocabularyEntry, clamp_srs_level


def _local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware timestamp to naive local time; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class ProgressRow(BaseModel):
    """Learning progress of one vocabulary entry."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    simplified: str = ""
    srs_level: int = Field(0, alias="srsLevel")
    next_review: date = Field(alias="nextReview")
    correct_count: int = Field(0, alias="correctCount", ge=0)
    incorrect_count: int = Field(0, alias="incorrectCount", ge=0)
    last_practiced: Optional[datetime] = Field(None, alias="lastPracticed")
    is_favorite: bool = Field(False, alias="isFavorite")

    @field_validator("id", mode="before")
    @classmethod
    def id_as_string(cls, v):
        if isinstance(v, bool) or not isinstance(v, (str, int)):
            raise ValueError("id must be a string or an integer")
        return str(v)

    @field_validator("srs_level")
    @classmethod
    def srs_level_in_table(cls, v: int) -> int:
        return clamp_srs_level(v)

    @field_validator("last_practiced")
    @classmethod
    def last_practiced_local(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _local_naive(v)

    @classmethod
    def from_entry(cls, entry: VocabularyEntry) -> "ProgressRow":
        return cls(
            id=entry.id,
            simplified=entry.simplified,
            srs_level=entry.srs_level,
            next_review=entry.next_review,
            correct_count=entry.correct_count,
            incorrect_count=entry.incorrect_count,
            last_practiced=entry.last_practiced,
            is_favorite=entry.is_favorite,
        )


class ProgressSnapshot(BaseModel):
    """Exported learning progress plus the time of export."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    export_date: datetime = Field(alias="exportDate")
    progress_data: List[ProgressRow] = Field(alias="progressData")

    def to_json(self, indent: Optional[int] = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
