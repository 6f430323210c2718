from .sqlalchemy_settings_store import SqlAlchemySettingsStore
from .sqlalchemy_vocabulary_store import SqlAlchemyVocabularyStore

__all__ = [
    "SqlAlchemySettingsStore",
    "SqlAlchemyVocabularyStore",
]
