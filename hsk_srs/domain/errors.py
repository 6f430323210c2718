"""
Typed domain errors for the vocabulary data layer.

Callers distinguish a missing entry from an unreachable store or a malformed
bulk input, and map each to an appropriate user-facing state.
"""


class DomainError(Exception):
    """Base class for all domain-specific errors."""


# ---------------------------------------------------------------------------
# Vocabulary store
# ---------------------------------------------------------------------------


class EntryNotFound(DomainError):
    """A mutation referenced a vocabulary id that is not in the store."""

    def __init__(self, entry_id: str) -> None:
        self.entry_id = entry_id
        super().__init__(f"Vocabulary entry {entry_id} not found")


class StoreUnavailable(DomainError):
    """The storage engine cannot be opened or accessed."""


# ---------------------------------------------------------------------------
# Bulk import / export
# ---------------------------------------------------------------------------


class EmptyFeed(DomainError):
    """A vocabulary import was requested with no records."""

    def __init__(self, message: str = "Vocabulary feed is empty") -> None:
        super().__init__(message)


class InvalidFormat(DomainError):
    """A progress snapshot does not have the expected shape."""


class FeedUnavailable(DomainError):
    """The remote vocabulary feed could not be fetched or was not a list."""
