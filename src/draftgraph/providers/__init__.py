"""AI draft service integrations."""

from draftgraph.providers.base import DraftService, DraftServiceError, request_bundle
from draftgraph.providers.factory import create_draft_service
from draftgraph.providers.http import HttpDraftService
from draftgraph.providers.mock import MockDraftService, build_mock_bundle

__all__ = [
    "DraftService",
    "DraftServiceError",
    "HttpDraftService",
    "MockDraftService",
    "build_mock_bundle",
    "create_draft_service",
    "request_bundle",
]
