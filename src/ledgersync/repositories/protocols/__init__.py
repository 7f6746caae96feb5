"""Repository protocol definitions (interfaces)."""

from ledgersync.repositories.protocols.preference_repo import PreferenceRepository

__all__ = [
    "PreferenceRepository",
]
