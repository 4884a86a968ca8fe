"""Base protocol and errors for AI draft services."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from draftgraph.models.draft import DraftBundle, DraftRequest, DraftResponse


@runtime_checkable
class DraftService(Protocol):
    """Protocol for AI draft services.

    A draft service turns a free-text prompt into a bundle of candidate
    nodes and edges. It may be a live model behind HTTP or a deterministic
    mock; callers cannot tell the difference except through
    ``DraftResponse.source``.
    """

    async def generate(self, request: DraftRequest) -> DraftResponse:
        """Generate a draft bundle.

        Args:
            request: Prompt, mode and level.

        Returns:
            DraftResponse with ``ok=True``. The bundle may be empty.

        Raises:
            DraftServiceError: If the service cannot produce a usable
                response.
        """
        ...


class DraftServiceError(Exception):
    """Raised when the draft service call fails.

    Attributes:
        reason: Short machine-readable tag (``timeout``, ``http_status``,
            ``invalid_json``, ``not_ok``, ``connection``).
        message: Human-readable description.
    """

    def __init__(self, reason: str, message: str) -> None:
        self.reason = reason
        self.message = message
        super().__init__(f"[{reason}] {message}")

    def to_user_message(self) -> str:
        return self.message


async def request_bundle(
    service: DraftService, request: DraftRequest, timeout: float
) -> tuple[DraftBundle, DraftResponse]:
    """Call *service* within *timeout* seconds and return its bundle.

    Raises:
        DraftServiceError: The call timed out, failed, answered ``ok=false``
            or carried no bundle.
    """
    try:
        async with asyncio.timeout(timeout):
            response = await service.generate(request)
    except TimeoutError as e:
        raise DraftServiceError(
            "timeout", f"Draft service did not answer within {timeout:g}s"
        ) from e
    bundle = response.bundle
    if not response.ok or bundle is None:
        raise DraftServiceError("not_ok", response.error or "Draft generation failed.")
    return bundle, response
