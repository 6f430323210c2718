from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class VocabularyRecord(Base, TimestampMixin):
    """Stored row for one vocabulary entry.

    ``examples`` holds the JSON-encoded example list; it is decoded into
    ``ExampleSentence`` tuples by the store and never leaves it as text.
    """

    __tablename__ = "vocabulary"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    simplified: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    traditional: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    pinyin: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    meanings: Mapped[str] = mapped_column(Text, nullable=False, default="")
    level: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    examples: Mapped[str] = mapped_column(Text, nullable=False, default="[]")

    # Learning progress
    srs_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_review: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    incorrect_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_practiced: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )
    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<VocabularyRecord id={self.id!r} simplified={self.simplified!r}>"
