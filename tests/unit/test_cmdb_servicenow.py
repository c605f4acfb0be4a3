"""Unit tests for the ServiceNow Table API client."""

from __future__ import annotations

import datetime as dt
import json
import typing as typ

import httpx
import pytest

from cmdbsync.cmdb import (
    NEVER_DISCOVERED,
    CIStatus,
    CMDBAuthMode,
    CMDBClientConfig,
    CMDBConflictError,
    CMDBUnavailableError,
    ConfigurationItem,
    ServiceNowCMDBClient,
)
from cmdbsync.cmdb.servicenow import decode_record, encode_record
from cmdbsync.reconcile import upsert_ci
from tests.helpers import FakeLogger

_TABLE_URL = "https://acme.service-now.com/api/now/table/cmdb_ci"

Handler: typ.TypeAlias = typ.Callable[[httpx.Request], httpx.Response]


def _row(**overrides: str) -> dict[str, str]:
    row = {
        "sys_id": "abc123",
        "asset_tag": "A-1",
        "name": "web-1",
        "category": "aws.ec2.instance",
        "environment": "prod",
        "install_status": "Installed",
        "discovery_source": "cmdbsync",
        "last_discovered": "2024-07-06 10:00:00",
        "company": "acme",
    }
    row.update(overrides)
    return row


def _ci(**overrides: object) -> ConfigurationItem:
    fields: dict[str, object] = {
        "asset_tag": "A-1",
        "name": "web-1",
        "classification": "aws.ec2.instance",
        "status": CIStatus.INSTALLED,
        "discovery_source": "cmdbsync",
        "last_discovered": dt.datetime(2024, 7, 6, 10, 0, tzinfo=dt.UTC),
        "environment": "prod",
        "organization": "acme",
    }
    fields.update(overrides)
    return ConfigurationItem(**fields)  # type: ignore[arg-type]


def _client(
    handler: Handler, *, config: CMDBClientConfig | None = None
) -> ServiceNowCMDBClient:
    config = config or CMDBClientConfig(
        instance_url="https://acme.service-now.com",
        username="integration",
        password="s3cret",
    )
    return ServiceNowCMDBClient(
        config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


def _json(body: object, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=body)


class TestRecordCodec:
    """Tests for the Table API row mapping."""

    def test_encode_uses_wire_names(self) -> None:
        """CI attributes are renamed to table columns."""
        body = encode_record("A-1", _ci())
        assert body == {
            "asset_tag": "A-1",
            "name": "web-1",
            "category": "aws.ec2.instance",
            "environment": "prod",
            "install_status": "Installed",
            "discovery_source": "cmdbsync",
            "last_discovered": "2024-07-06 10:00:00",
            "company": "acme",
        }

    def test_decode_blank_values(self) -> None:
        """Empty strings become None or sentinel values."""
        ci = decode_record(
            _row(environment="", company="", last_discovered="", install_status="")
        )
        assert ci.environment is None
        assert ci.organization is None
        assert ci.last_discovered == NEVER_DISCOVERED
        assert ci.status is CIStatus.UNKNOWN

    def test_decode_requires_sys_id(self) -> None:
        """Rows without a sys_id cannot be trusted."""
        with pytest.raises(CMDBConflictError, match="sys_id"):
            decode_record(_row(sys_id=""))

    def test_decode_rejects_bad_timestamp(self) -> None:
        """Unreadable timestamps are conflicts."""
        with pytest.raises(CMDBConflictError, match="last_discovered"):
            decode_record(_row(last_discovered="last tuesday"))


class TestFind:
    """Tests for ``ServiceNowCMDBClient.find``."""

    @pytest.mark.asyncio
    async def test_queries_by_asset_tag(self) -> None:
        """find issues a filtered GET with basic auth and returns the CI."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json({"result": [_row()]})

        client = _client(handler)
        ci = await client.find("A-1")
        await client.aclose()

        assert ci is not None
        assert ci.sys_id == "abc123"
        request = seen[0]
        assert request.method == "GET"
        assert str(request.url).startswith(_TABLE_URL)
        assert request.url.params["sysparm_query"] == "asset_tag=A-1"
        assert request.url.params["sysparm_limit"] == "2"
        assert request.headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_returns_none_when_absent(self) -> None:
        """An empty result list means no CI exists."""
        client = _client(lambda _req: _json({"result": []}))
        assert await client.find("A-1") is None

    @pytest.mark.asyncio
    async def test_duplicate_rows_are_conflicts(self) -> None:
        """Two rows for one asset tag violate uniqueness."""
        client = _client(
            lambda _req: _json({"result": [_row(), _row(sys_id="def456")]})
        )
        with pytest.raises(CMDBConflictError, match="2 records"):
            await client.find("A-1")

    @pytest.mark.asyncio
    async def test_caret_in_asset_tag_is_escaped(self) -> None:
        """Encoded-query operators inside an asset tag are sent as literals."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json({"result": []})

        client = _client(handler)
        await client.find("A-1^ORasset_tag=B-2")

        assert seen[0].url.params["sysparm_query"] == "asset_tag=A-1^^ORasset_tag=B-2"

    @pytest.mark.asyncio
    async def test_row_for_another_asset_tag_is_a_conflict(self) -> None:
        """A row whose asset tag differs from the lookup is never trusted."""
        client = _client(
            lambda _req: _json({"result": [_row(sys_id="victim", asset_tag="B-2")]})
        )
        with pytest.raises(CMDBConflictError, match="returned 'B-2'"):
            await client.find("A-1^ORasset_tag=B-2")

    @pytest.mark.asyncio
    async def test_mismatched_row_is_never_patched(self) -> None:
        """Upserting through a mismatched lookup issues no write."""
        methods: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return _json({"result": [_row(sys_id="victim", asset_tag="B-2")]})

        with pytest.raises(CMDBConflictError):
            await upsert_ci(_client(handler), _ci(asset_tag="A-1^ORasset_tag=B-2"))
        assert methods == ["GET"]

    @pytest.mark.asyncio
    async def test_oauth_sends_bearer(self) -> None:
        """OAuth mode authenticates with a bearer token."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json({"result": []})

        config = CMDBClientConfig(
            instance_url="https://acme.service-now.com",
            auth=CMDBAuthMode.OAUTH,
            oauth_token="tok",
        )
        await _client(handler, config=config).find("A-1")
        assert seen[0].headers["Authorization"] == "Bearer tok"


class TestWrites:
    """Tests for ``create`` and ``update``."""

    @pytest.mark.asyncio
    async def test_create_posts_record(self) -> None:
        """create POSTs the encoded CI and decodes the stored row."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json({"result": _row(sys_id="new1")}, status=201)

        stored = await _client(handler).create(_ci())

        assert stored.sys_id == "new1"
        assert seen[0].method == "POST"
        assert json.loads(seen[0].content)["asset_tag"] == "A-1"

    @pytest.mark.asyncio
    async def test_update_patches_by_sys_id(self) -> None:
        """update PATCHes the row addressed by the CI's sys_id."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json({"result": _row(install_status="Retired")})

        stored = await _client(handler).update(
            "A-1", _ci(sys_id="abc123", status=CIStatus.RETIRED)
        )

        assert stored.status is CIStatus.RETIRED
        assert seen[0].method == "PATCH"
        assert seen[0].url.path.endswith("/cmdb_ci/abc123")
        assert json.loads(seen[0].content)["install_status"] == "Retired"

    @pytest.mark.asyncio
    async def test_update_resolves_missing_sys_id(self) -> None:
        """Without a sys_id the row is looked up first."""
        methods: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            if request.method == "GET":
                return _json({"result": [_row()]})
            return _json({"result": _row()})

        await _client(handler).update("A-1", _ci())
        assert methods == ["GET", "PATCH"]


class TestErrorClassification:
    """Transport and HTTP failures map onto retryable or fatal errors."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403, 429, 500, 503])
    async def test_retryable_statuses(self, status: int) -> None:
        """Auth, throttling and server errors are retryable."""
        client = _client(lambda _req: httpx.Response(status))
        with pytest.raises(CMDBUnavailableError) as excinfo:
            await client.find("A-1")
        assert excinfo.value.status_code == status

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404, 409])
    async def test_client_errors_are_conflicts(self, status: int) -> None:
        """Other 4xx responses are fatal for the event."""
        client = _client(lambda _req: httpx.Response(status))
        with pytest.raises(CMDBConflictError, match=str(status)):
            await client.find("A-1")

    @pytest.mark.asyncio
    async def test_timeout_is_retryable(self) -> None:
        """httpx timeouts become CMDBUnavailableError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(CMDBUnavailableError, match="timed out"):
            await _client(handler).find("A-1")

    @pytest.mark.asyncio
    async def test_network_error_is_retryable(self) -> None:
        """Connection failures become CMDBUnavailableError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(CMDBUnavailableError, match="network"):
            await _client(handler).find("A-1")

    @pytest.mark.asyncio
    async def test_malformed_body_is_conflict(self) -> None:
        """Non-JSON bodies are conflicts."""
        client = _client(lambda _req: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(CMDBConflictError, match="malformed"):
            await client.find("A-1")

    @pytest.mark.asyncio
    async def test_missing_result_is_conflict(self) -> None:
        """JSON without a result member is a conflict."""
        client = _client(lambda _req: _json({"records": []}))
        with pytest.raises(CMDBConflictError, match="result"):
            await client.find("A-1")


@pytest.mark.asyncio
async def test_aclose_leaves_injected_client_open() -> None:
    """Injected HTTP clients are owned by the caller."""
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda _req: _json({"result": []}))
    )
    config = CMDBClientConfig(
        instance_url="https://acme.service-now.com", username="u", password="p"
    )
    client = ServiceNowCMDBClient(config, http_client=http_client)
    await client.aclose()
    assert not http_client.is_closed
    await http_client.aclose()


@pytest.mark.asyncio
async def test_requests_are_logged_at_debug(monkeypatch: pytest.MonkeyPatch) -> None:
    """Each CMDB call logs its operation and response status."""
    fake = FakeLogger()
    monkeypatch.setattr("cmdbsync.cmdb.servicenow.logger", fake)

    await _client(lambda _req: _json({"result": []})).find("A-1")

    assert fake.messages("DEBUG") == [f"CMDB find GET {_TABLE_URL} -> 200"]
