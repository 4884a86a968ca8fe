"""Tests for draft service implementations."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from draftgraph.models.draft import DraftRequest, DraftResponse
from draftgraph.pipeline.config import DraftServiceConfig
from draftgraph.providers import (
    DraftService,
    DraftServiceError,
    HttpDraftService,
    MockDraftService,
    build_mock_bundle,
    create_draft_service,
    request_bundle,
)
from draftgraph.providers.mock import draft_seed, prompt_snippet

# --- Mock service ---


class TestMockBundle:
    """Tests for the deterministic mock bundle."""

    def test_same_input_same_bundle(self) -> None:
        """Identical requests produce identical bundles, ids and timestamps included."""
        first = build_mock_bundle("Land registry for investors", "business", "detailed")
        second = build_mock_bundle("Land   registry for investors ", "business", "detailed")
        assert first == second

    def test_nonce_changes_bundle(self) -> None:
        """A nonce yields a different seed."""
        assert draft_seed("idea", "requirements", "detailed") != draft_seed(
            "idea", "requirements", "detailed", "retry-1"
        )

    def test_mode_templates(self) -> None:
        """Each mode yields its six templates, chained by five edges."""
        bundle = build_mock_bundle("Founder OS", "decisions", "detailed")

        assert [n["type"] for n in bundle.nodes] == [
            "Decision",
            "Decision",
            "Requirement",
            "Task",
            "Task",
            "Risk",
        ]
        assert bundle.nodes[0]["title"] == "Decision lane for: Founder OS"
        assert len(bundle.edges) == 5
        assert all(n["stage"] == "proposed" for n in bundle.nodes)

    def test_baseline_level(self) -> None:
        """requirements/baseline yields a Concept plus six Requirements."""
        bundle = build_mock_bundle("Founder OS", "requirements", "baseline")

        assert bundle.titles_of_type("Concept") == ["Baseline Concept: Founder OS"]
        requirements = [n for n in bundle.nodes if n["type"] == "Requirement"]
        assert len(requirements) == 6
        concept_id = bundle.nodes[0]["id"]
        assert all(r["parentId"] == concept_id for r in requirements)

    def test_timestamps_from_base_time(self) -> None:
        """Mock timestamps fall in the year after the fixed base time."""
        bundle = build_mock_bundle("x", "requirements", "detailed")
        assert all(n["createdAt"].startswith(("2026-", "2027-")) for n in bundle.nodes)

    def test_empty_prompt_snippet(self) -> None:
        """An empty prompt falls back to a default snippet."""
        assert prompt_snippet("   ") == "founder governance os"

    async def test_service_records_calls(self) -> None:
        """MockDraftService answers ok with source mock and keeps its requests."""
        service = MockDraftService(fallback_reason="missing_url")
        request = DraftRequest(prompt="idea", mode="business")

        response = await service.generate(request)

        assert isinstance(service, DraftService)
        assert response.ok
        assert response.source == "mock"
        assert response.fallback_reason == "missing_url"
        assert response.bundle is not None
        assert service.calls == [request]


# --- HTTP service ---


def _response(status: int, body: object) -> httpx.Response:
    return httpx.Response(status, json=body, request=httpx.Request("POST", "http://draft.test"))


@pytest.fixture
def http_service() -> HttpDraftService:
    return HttpDraftService("http://draft.test/generate", timeout=5.0)


async def test_http_success(http_service: HttpDraftService) -> None:
    """A 2xx ok response is parsed into DraftResponse."""
    body = {
        "ok": True,
        "source": "ai",
        "bundle": {"nodes": [{"id": "n1", "type": "Requirement", "title": "R"}], "edges": []},
    }
    with patch.object(
        http_service._client, "post", new=AsyncMock(return_value=_response(200, body))
    ) as post:
        response = await http_service.generate(DraftRequest(prompt="idea", level="baseline"))

    assert response.source == "ai"
    assert response.bundle is not None
    assert response.bundle.titles() == ["R"]
    post.assert_awaited_once()
    assert post.await_args.kwargs["json"] == {
        "prompt": "idea",
        "mode": "requirements",
        "level": "baseline",
    }


async def test_http_status_error(http_service: HttpDraftService) -> None:
    """Non-2xx responses raise with the service's error text."""
    with patch.object(
        http_service._client,
        "post",
        new=AsyncMock(return_value=_response(502, {"ok": False, "error": "upstream down"})),
    ):
        with pytest.raises(DraftServiceError) as exc_info:
            await http_service.generate(DraftRequest(prompt="idea"))

    assert exc_info.value.reason == "http_status"
    assert exc_info.value.to_user_message() == "upstream down"


async def test_http_not_ok(http_service: HttpDraftService) -> None:
    """A 200 with ok=false is a failure."""
    with patch.object(
        http_service._client,
        "post",
        new=AsyncMock(return_value=_response(200, {"ok": False, "error": "quota"})),
    ):
        with pytest.raises(DraftServiceError) as exc_info:
            await http_service.generate(DraftRequest(prompt="idea"))

    assert exc_info.value.reason == "not_ok"


async def test_http_invalid_json(http_service: HttpDraftService) -> None:
    """A body that is not JSON raises invalid_json."""
    bad = httpx.Response(200, text="<html>", request=httpx.Request("POST", "http://draft.test"))
    with patch.object(http_service._client, "post", new=AsyncMock(return_value=bad)):
        with pytest.raises(DraftServiceError) as exc_info:
            await http_service.generate(DraftRequest(prompt="idea"))

    assert exc_info.value.reason == "invalid_json"


async def test_http_timeout(http_service: HttpDraftService) -> None:
    """httpx timeouts map to the timeout reason."""
    with patch.object(
        http_service._client,
        "post",
        new=AsyncMock(side_effect=httpx.ReadTimeout("slow")),
    ):
        with pytest.raises(DraftServiceError) as exc_info:
            await http_service.generate(DraftRequest(prompt="idea"))

    assert exc_info.value.reason == "timeout"


async def test_http_connect_error(http_service: HttpDraftService) -> None:
    """Connection failures map to the connection reason."""
    with patch.object(
        http_service._client,
        "post",
        new=AsyncMock(side_effect=httpx.ConnectError("refused")),
    ):
        with pytest.raises(DraftServiceError) as exc_info:
            await http_service.generate(DraftRequest(prompt="idea"))

    assert exc_info.value.reason == "connection"
    assert "Failed to connect" in str(exc_info.value)


async def test_http_close_only_owned_client() -> None:
    """close() leaves an injected client open."""
    client = httpx.AsyncClient()
    service = HttpDraftService("http://draft.test", client=client)

    await service.close()
    assert not client.is_closed

    await client.aclose()


# --- Bounded request ---


class TestRequestBundle:
    """Tests for calling a service with a time limit."""

    async def test_returns_bundle_and_response(self) -> None:
        request = DraftRequest(prompt="Founder OS", mode="business", level="detailed")

        bundle, response = await request_bundle(MockDraftService(), request, 1.0)

        assert len(bundle.nodes) == 6
        assert response.source == "mock"

    async def test_timeout(self) -> None:
        """A service slower than the limit is abandoned."""

        async def slow(_request: object) -> DraftResponse:
            await asyncio.sleep(5)
            return DraftResponse(ok=True)

        service = AsyncMock()
        service.generate.side_effect = slow

        with pytest.raises(DraftServiceError) as exc_info:
            await request_bundle(service, DraftRequest(prompt="x"), 0.01)
        assert exc_info.value.reason == "timeout"

    @pytest.mark.parametrize(
        "response",
        [DraftResponse(ok=False, error="quota"), DraftResponse(ok=True, bundle=None)],
    )
    async def test_not_ok_or_empty(self, response: DraftResponse) -> None:
        service = AsyncMock()
        service.generate.return_value = response

        with pytest.raises(DraftServiceError) as exc_info:
            await request_bundle(service, DraftRequest(prompt="x"), 1.0)
        assert exc_info.value.reason == "not_ok"


# --- Factory ---


class TestCreateDraftService:
    """Tests for choosing the draft service."""

    def test_forced_mock(self) -> None:
        """force_mock wins over a configured URL."""
        service = create_draft_service(
            DraftServiceConfig(url="http://draft.test", force_mock=True)
        )
        assert isinstance(service, MockDraftService)

    def test_missing_url(self) -> None:
        """No URL selects the mock."""
        assert isinstance(create_draft_service(DraftServiceConfig()), MockDraftService)

    def test_http(self) -> None:
        """A URL selects the HTTP client."""
        service = create_draft_service(DraftServiceConfig(url="http://draft.test"))
        assert isinstance(service, HttpDraftService)
        assert service.url == "http://draft.test"
