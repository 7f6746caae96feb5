"""Small user preferences kept in the local durable store."""

import logging
from typing import Optional

from ledgersync.core.exceptions import LocalValidationError
from ledgersync.domain.models import DateFilterPreset
from ledgersync.repositories.protocols import PreferenceRepository

logger = logging.getLogger(__name__)

DATE_FILTER_KEY = "loans_date_filter"
SIDEBAR_KEY = "sidebarOpen"

ALL_LOANS = "all"
CUSTOM_RANGE = "custom"

DATE_FILTER_CHOICES = frozenset(
    {ALL_LOANS, CUSTOM_RANGE} | {preset.value for preset in DateFilterPreset}
)


class PreferenceService:
    """Loan page preferences: date filter selection and sidebar state."""

    def __init__(self, repo: PreferenceRepository):
        self._repo = repo

    def get_date_filter(self) -> str:
        """
        Saved date filter selection.

        A saved custom range is not restored; it reads back as "all".
        """
        saved = self._repo.get(DATE_FILTER_KEY) or ALL_LOANS
        if saved == CUSTOM_RANGE or saved not in DATE_FILTER_CHOICES:
            return ALL_LOANS
        return saved

    def set_date_filter(self, value: str) -> None:
        """Persist the date filter selection."""
        value = (value or "").strip().lower()
        if value not in DATE_FILTER_CHOICES:
            raise LocalValidationError(f"Unknown date filter: {value!r}")
        self._repo.set(DATE_FILTER_KEY, value)
        logger.debug("Saved date filter %s", value)

    def preset_filter(self) -> Optional[str]:
        """The saved filter as a listing preset, or None for every loan."""
        saved = self.get_date_filter()
        return None if saved == ALL_LOANS else saved

    def is_sidebar_open(self) -> bool:
        """Sidebar state; closed unless explicitly opened."""
        saved = self._repo.get(SIDEBAR_KEY)
        return saved == "true" if saved is not None else False

    def set_sidebar_open(self, is_open: bool) -> None:
        self._repo.set(SIDEBAR_KEY, "true" if is_open else "false")

    def toggle_sidebar(self) -> bool:
        """Flip the sidebar state and return the new value."""
        new_state = not self.is_sidebar_open()
        self.set_sidebar_open(new_state)
        return new_state
