from .settings_store import SettingsStore
from .vocabulary_store import VocabularyStore

__all__ = ["SettingsStore", "VocabularyStore"]
