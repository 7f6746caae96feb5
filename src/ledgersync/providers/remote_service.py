"""Remote resource service protocol."""

from typing import Any, Optional, Protocol


class RemoteResourceService(Protocol):
    """
    Uniform request interface to the loan backend.

    Paths are relative to the API root ("loans", "loans/7/installments",
    "payment-methods"). Implementations return the decoded response body
    (None for an empty body) and raise:
    - RemoteValidationError for a structured error body
    - TransportError for network failures or unstructured error responses
    Timeouts are the implementation's responsibility.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Issue one request and return the decoded body."""
        ...

    async def aclose(self) -> None:
        """Release any underlying connections."""
        ...
