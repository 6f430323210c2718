"""Vocabulary domain types: entries, example sentences and practice config."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import FrozenSet, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Level sentinel for chengyu (idiomatic expressions), outside the HSK tiers.
IDIOM_LEVEL = -1

HSK_LEVELS: Tuple[int, ...] = (1, 2, 3, 4, 5, 6)

# Review intervals in days, indexed by SRS level.
SRS_INTERVALS: Tuple[int, ...] = (1, 3, 7, 14, 30, 60, 120, 240)
MAX_SRS_LEVEL = len(SRS_INTERVALS) - 1


def clamp_srs_level(level: int) -> int:
    """Clamp *level* into a valid index of ``SRS_INTERVALS``."""
    return max(0, min(int(level), MAX_SRS_LEVEL))


@dataclass(frozen=True)
class ExampleSentence:
    simplified: str
    pinyin: str = ""
    english: str = ""

    def to_dict(self) -> dict:
        return {
            "simplified": self.simplified,
            "pinyin": self.pinyin,
            "english": self.english,
        }


@dataclass(frozen=True)
class VocabularyEntry:
    """One learnable unit (word or idiom) with its learning progress.

    Instances are immutable; mutations go through ``dataclasses.replace``
    inside a single read-modify-write on the repository.
    """

    id: str
    simplified: str
    pinyin: str
    meanings: str
    level: int
    traditional: str = ""
    examples: Tuple[ExampleSentence, ...] = ()
    srs_level: int = 0
    next_review: date = field(default_factory=date.today)
    correct_count: int = 0
    incorrect_count: int = 0
    last_practiced: Optional[datetime] = None
    is_favorite: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "srs_level", clamp_srs_level(self.srs_level))
        object.__setattr__(self, "correct_count", max(0, int(self.correct_count)))
        object.__setattr__(self, "incorrect_count", max(0, int(self.incorrect_count)))
        if not self.traditional:
            object.__setattr__(self, "traditional", self.simplified)
        if not isinstance(self.examples, tuple):
            object.__setattr__(self, "examples", tuple(self.examples))

    @property
    def has_examples(self) -> bool:
        return len(self.examples) > 0

    @property
    def is_idiom(self) -> bool:
        return self.level == IDIOM_LEVEL

    @property
    def is_mastered(self) -> bool:
        return self.correct_count > 0

    def is_due(self, today: date) -> bool:
        return self.next_review <= today


class FilterType(str, enum.Enum):
    """Browse-list filters."""

    ALL = "all"
    MASTERED = "mastered"
    LEARNING = "learning"
    FAVORITE = "favorite"


def _focus_level(value) -> Optional[int]:
    """Parse one ``hskFocus`` entry; None (and a warning) when it is not a level."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    logger.warning(f"Ignoring invalid hskFocus level: {value!r}")
    return None


@dataclass(frozen=True)
class PracticeConfig:
    """Practice preferences handed to the repository at construction.

    Built from the settings table (``hskFocus``, ``preferOfflinePractice``)
    by the surrounding application, never read mid-operation.
    """

    active_levels: FrozenSet[int] = frozenset(HSK_LEVELS)
    prefer_offline: bool = False

    @classmethod
    def from_settings(cls, settings: dict) -> "PracticeConfig":
        levels = settings.get("hskFocus")
        prefer_offline = settings.get("preferOfflinePractice", False)
        active = frozenset(HSK_LEVELS)
        if isinstance(levels, Iterable) and not isinstance(levels, (str, bytes, dict)):
            valid = {_focus_level(level) for level in levels} - {None}
            if valid:
                active = frozenset(valid)
        return cls(active_levels=active, prefer_offline=bool(prefer_offline))


@dataclass
class LevelProgress:
    level: int
    total: int = 0
    mastered: int = 0

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 0
        return round(self.mastered / self.total * 100)


@dataclass
class ProgressStats:
    """Aggregate learning progress for the progress overview."""

    total_words: int = 0
    mastered_words: int = 0
    due_today: int = 0
    favorites: int = 0
    by_level: List[LevelProgress] = field(default_factory=list)
