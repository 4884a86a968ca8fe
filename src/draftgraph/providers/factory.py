"""Factory for creating draft services."""

from __future__ import annotations

from typing import TYPE_CHECKING

from draftgraph.observability.logging import get_logger
from draftgraph.providers.http import HttpDraftService
from draftgraph.providers.mock import MockDraftService

if TYPE_CHECKING:
    from draftgraph.pipeline.config import DraftServiceConfig
    from draftgraph.providers.base import DraftService

log = get_logger(__name__)


def create_draft_service(config: DraftServiceConfig) -> DraftService:
    """Create the draft service described by *config*.

    The deterministic mock is used when ``force_mock`` is set or no URL is
    configured; otherwise an HTTP client for the configured endpoint.

    Args:
        config: Draft service section of the workspace config (environment
            overrides already applied).

    Returns:
        A DraftService implementation.
    """
    if config.force_mock:
        log.info("draft_service_selected", kind="mock", reason="forced_mock")
        return MockDraftService(fallback_reason="forced_mock")
    if not config.url:
        log.info("draft_service_selected", kind="mock", reason="missing_url")
        return MockDraftService(fallback_reason="missing_url")
    log.info("draft_service_selected", kind="http", url=config.url)
    return HttpDraftService(config.url, timeout=config.timeout)
