"""HTTP draft service client."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from draftgraph.models.draft import DraftResponse
from draftgraph.observability.logging import get_logger
from draftgraph.providers.base import DraftServiceError

if TYPE_CHECKING:
    from draftgraph.models.draft import DraftRequest

log = get_logger(__name__)

DEFAULT_TIMEOUT = 15.0


class HttpDraftService:
    """Draft service reached with a JSON POST.

    The endpoint receives ``{prompt, mode, level, nonce?}`` and answers with
    ``{ok, bundle, source, fallbackReason?, error?}``.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            url: Endpoint URL.
            timeout: Request timeout in seconds.
            client: Pre-built client (for testing). Closed by :meth:`close`
                only when created here.
        """
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    @property
    def url(self) -> str:
        return self._url

    async def generate(self, request: DraftRequest) -> DraftResponse:
        """POST *request* and validate the response.

        Raises:
            DraftServiceError: On connection failure, timeout, non-2xx
                status, invalid JSON or ``ok: false``.
        """
        try:
            response = await self._client.post(self._url, json=request.to_payload())
        except httpx.TimeoutException as e:
            raise DraftServiceError("timeout", f"Draft service timed out: {e}") from e
        except httpx.ConnectError as e:
            raise DraftServiceError(
                "connection", f"Failed to connect to draft service: {e}"
            ) from e
        except httpx.RequestError as e:
            raise DraftServiceError("connection", f"Draft service request error: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            if not response.is_success:
                raise DraftServiceError(
                    "http_status", f"Draft service error (status {response.status_code})"
                ) from e
            raise DraftServiceError("invalid_json", f"Invalid JSON response: {e}") from e

        if not response.is_success:
            detail = data.get("error") if isinstance(data, dict) else None
            raise DraftServiceError(
                "http_status",
                detail or f"Draft service error (status {response.status_code})",
            )
        if not isinstance(data, dict):
            raise DraftServiceError("invalid_json", "Draft service returned a non-object body")

        try:
            parsed = DraftResponse.model_validate(data)
        except ValidationError as e:
            raise DraftServiceError("invalid_json", f"Malformed draft response: {e}") from e

        if not parsed.ok:
            raise DraftServiceError("not_ok", parsed.error or "Draft service reported failure")

        log.debug(
            "draft_service_response",
            source=parsed.source,
            nodes=len(parsed.bundle.nodes) if parsed.bundle else 0,
            fallback_reason=parsed.fallback_reason,
        )
        return parsed

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client:
            await self._client.aclose()
