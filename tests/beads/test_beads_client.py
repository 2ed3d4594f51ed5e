"""Tests for the beads daemon client."""

import json

import httpx
import pytest
import respx
from httpx import Response

from beadbridge.beads import BeadsClient, BeadsError, BeadsUnavailableError, NotFoundError
from beadbridge.config.models import BeadsConfig
from beadbridge.models import CreateBeadRequest

BASE_URL = "http://beads:8080"


@pytest.fixture
def client() -> BeadsClient:
    return BeadsClient(BeadsConfig(http_addr=BASE_URL), max_retries=2)


class TestBaseUrl:
    """Tests for address normalization."""

    def test_scheme_added(self):
        assert BeadsClient(BeadsConfig(http_addr="beads:8080/")).base_url == BASE_URL

    def test_https_kept(self):
        assert BeadsClient(BeadsConfig(http_addr="https://b.example")).base_url == "https://b.example"


class TestBeadsClient:
    """Tests for BeadsClient requests."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_task_beads(self, client):
        route = respx.get(f"{BASE_URL}/v1/beads").mock(
            return_value=Response(
                200,
                json={
                    "beads": [
                        {"id": "kd-1", "type": "task", "fields": {"jira_key": "PE-1"}},
                        {"id": "kd-2", "type": "task", "fields": '{"jira_key": "PE-2"}'},
                    ],
                    "total": 2,
                },
            )
        )

        async with client:
            beads = await client.list_task_beads()

        assert [b.fields["jira_key"] for b in beads] == ["PE-1", "PE-2"]
        params = route.calls[0].request.url.params
        assert params["type"] == "task"
        assert params["status"] == "open,in_progress,blocked,deferred"

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_bead(self, client):
        respx.get(f"{BASE_URL}/v1/beads/kd-9").mock(
            return_value=Response(
                200,
                json={"id": "kd-9", "title": "Pick one", "fields": {"chosen": "A"}},
            )
        )

        async with client:
            bead = await client.get_bead("kd-9")

        assert bead.title == "Pick one"
        assert bead.fields["chosen"] == "A"

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_missing_bead(self, client):
        respx.get(f"{BASE_URL}/v1/beads/kd-404").mock(
            return_value=Response(404, json={"error": "bead not found"})
        )

        async with client:
            with pytest.raises(NotFoundError) as exc_info:
                await client.get_bead("kd-404")

        assert exc_info.value.status_code == 404
        assert "bead not found" in str(exc_info.value)

    @pytest.mark.asyncio
    @respx.mock
    async def test_find_agent_bead(self, client):
        route = respx.get(f"{BASE_URL}/v1/beads").mock(
            return_value=Response(
                200,
                json={
                    "beads": [
                        {"id": "ag-1", "fields": {"agent": "other"}},
                        {"id": "ag-2", "notes": "coop_url: http://x", "fields": {"agent": "bot"}},
                    ]
                },
            )
        )

        async with client:
            bead = await client.find_agent_bead("bot")
            with pytest.raises(NotFoundError):
                await client.find_agent_bead("ghost")

        assert bead.id == "ag-2"
        assert route.calls[0].request.url.params["type"] == "agent"

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_bead(self, client):
        route = respx.post(f"{BASE_URL}/v1/beads").mock(
            return_value=Response(201, json={"id": "kd-77"})
        )

        async with client:
            bead_id = await client.create_bead(
                CreateBeadRequest(title="[PE-1] Fix", labels=["source:jira"], fields={"a": "b"})
            )

        assert bead_id == "kd-77"
        assert json.loads(route.calls[0].request.content) == {
            "title": "[PE-1] Fix",
            "type": "task",
            "priority": 2,
            "labels": ["source:jira"],
            "fields": {"a": "b"},
        }

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_without_id_fails(self, client):
        respx.post(f"{BASE_URL}/v1/beads").mock(return_value=Response(201, json={}))

        async with client:
            with pytest.raises(BeadsError):
                await client.create_bead(CreateBeadRequest(title="x"))

    @pytest.mark.asyncio
    @respx.mock
    async def test_close_bead(self, client):
        route = respx.post(f"{BASE_URL}/v1/beads/kd-3/close").mock(return_value=Response(204))

        async with client:
            await client.close_bead("kd-3", {"reason": "expired"})

        assert json.loads(route.calls[0].request.content) == {
            "closed_by": "beadbridge",
            "reason": "expired",
        }

    @pytest.mark.asyncio
    @respx.mock
    async def test_retries_server_errors(self, client):
        route = respx.get(f"{BASE_URL}/v1/beads").mock(
            side_effect=[Response(503, text="busy"), Response(200, json={"beads": []})]
        )

        async with client:
            assert await client.list_decision_beads() == []

        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_gives_up_after_retries(self, client):
        route = respx.get(f"{BASE_URL}/v1/beads").mock(return_value=Response(500))

        async with client:
            with pytest.raises(BeadsUnavailableError) as exc_info:
                await client.list_task_beads()

        assert exc_info.value.status_code == 500
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_client_errors_not_retried(self, client):
        route = respx.post(f"{BASE_URL}/v1/beads").mock(
            return_value=Response(400, json={"error": "title required"})
        )

        async with client:
            with pytest.raises(BeadsError) as exc_info:
                await client.create_bead(CreateBeadRequest(title=""))

        assert exc_info.value.status_code == 400
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error_wrapped(self, client):
        respx.get(f"{BASE_URL}/v1/beads").mock(side_effect=httpx.ConnectError("refused"))

        async with client:
            with pytest.raises(BeadsError, match="refused"):
                await client.list_task_beads()


@pytest.mark.asyncio
async def test_client_context_manager():
    """Owned HTTP client is released on exit."""
    client = BeadsClient(BeadsConfig(http_addr=BASE_URL))

    async with client:
        assert client._client is not None

    assert client._client is None
