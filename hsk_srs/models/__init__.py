from .base import Base, TimestampMixin
from .setting import Setting
from .vocabulary import VocabularyRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "Setting",
    "VocabularyRecord",
]
