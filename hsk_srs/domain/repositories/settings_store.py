"""SettingsStore protocol: flat string-keyed application settings."""

from typing import Any, Dict, Protocol, runtime_checkable


@runtime_checkable
class SettingsStore(Protocol):
    """Key/value access to the auxiliary settings table."""

    async def get_setting(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for *key*, or *default* if unset."""
        ...

    async def save_setting(self, key: str, value: Any) -> Any:
        """Store *value* under *key* and return it."""
        ...

    async def get_all_settings(self) -> Dict[str, Any]:
        """Return every setting as a plain dict."""
        ...
