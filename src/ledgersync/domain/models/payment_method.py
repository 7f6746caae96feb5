"""PaymentMethod domain model."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class PaymentMethod:
    """Read-only lookup entry referenced by installments."""

    id: Any
    name: str
    provider: Optional[str] = None

    @property
    def label(self) -> str:
        """Display label, e.g. "Visa (HDFC)"."""
        return f"{self.name} ({self.provider})" if self.provider else self.name
