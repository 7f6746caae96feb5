"""httpx-backed implementation of the remote resource service."""

import logging
from typing import Any, Optional

import httpx

from ledgersync.core.exceptions import RemoteValidationError, TransportError
from ledgersync.core.messages import join_field_errors, message_from_body

logger = logging.getLogger(__name__)


class HttpRemoteService:
    """
    Talks to the loan backend over HTTP.

    Attaches a bearer token when one is configured. Error bodies that decode
    to a JSON object become RemoteValidationError; everything else that goes
    wrong becomes TransportError.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/") + "/"
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Issue one request and return the decoded body."""
        client = self._get_client()
        try:
            response = await client.request(
                method,
                path.lstrip("/"),
                params=params,
                json=json,
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        if response.is_error:
            raise self._to_error(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _to_error(response: httpx.Response) -> Exception:
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = response.text.strip() or None

        if isinstance(body, dict) and body:
            # Field-keyed validation maps read best joined; envelopes with a
            # message read best as that message.
            if "message" in body or "error" in body:
                message = message_from_body(body)
            else:
                message = join_field_errors(body) or message_from_body(body)
            logger.info("Service rejected request (%s): %s", status, message)
            return RemoteValidationError(message, body=body, status_code=status)

        if isinstance(body, str) and status < 500:
            return RemoteValidationError(body, body=body, status_code=status)

        return TransportError(f"Request failed with status code {status}", status_code=status)

    async def aclose(self) -> None:
        """Close the underlying client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
