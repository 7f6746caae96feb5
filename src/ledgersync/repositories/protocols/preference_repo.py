"""Preference repository protocol."""

from typing import Protocol, Optional


class PreferenceRepository(Protocol):
    """Interface for the local durable key-value store."""

    def get(self, key: str) -> Optional[str]:
        """Get the stored value, or None when the key was never set."""
        ...

    def set(self, key: str, value: str) -> None:
        """Insert or overwrite a value."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""
        ...
