"""ServiceNow Table API implementation of the CMDBClient protocol."""

from __future__ import annotations

import typing as typ

import httpx
import msgspec

from cmdbsync.cmdb.config import CMDBAuthMode
from cmdbsync.cmdb.errors import CMDBConflictError, CMDBUnavailableError
from cmdbsync.cmdb.models import NEVER_DISCOVERED, CIStatus, ConfigurationItem
from cmdbsync.common.time import format_cmdb_timestamp, parse_cmdb_timestamp
from cmdbsync.logging import get_logger, log_debug

if typ.TYPE_CHECKING:
    from cmdbsync.cmdb.config import CMDBClientConfig

logger = get_logger(__name__)

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_SERVER_ERROR_THRESHOLD = 500
_HTTP_RATE_LIMITED = 429
_AUTH_FAILURE_STATUSES = frozenset({401, 403})

# Two rows are enough to detect a violated uniqueness invariant.
_FIND_LIMIT = 2

_RECORD_FIELDS = (
    "sys_id",
    "asset_tag",
    "name",
    "category",
    "environment",
    "install_status",
    "discovery_source",
    "last_discovered",
    "company",
)


class TableRecord(msgspec.Struct, kw_only=True):
    """CI table row as returned by the Table API.

    The Table API renders every column as a string and uses ``""`` for empty
    values; unknown columns are ignored.
    """

    sys_id: str
    asset_tag: str
    name: str = ""
    category: str = ""
    environment: str = ""
    install_status: str = ""
    discovery_source: str = ""
    last_discovered: str = ""
    company: str = ""


def asset_tag_query(asset_tag: str) -> str:
    """Return the encoded query matching ``asset_tag`` exactly.

    ``^`` separates encoded-query terms; a literal caret is written ``^^``.

    Examples
    --------
    >>> asset_tag_query("A-1^ORasset_tag=B-2")
    'asset_tag=A-1^^ORasset_tag=B-2'

    """
    return "asset_tag=" + asset_tag.replace("^", "^^")


def encode_record(asset_tag: str, ci: ConfigurationItem) -> dict[str, str]:
    """Render ``ci`` as a Table API request body keyed by ``asset_tag``."""
    return {
        "asset_tag": asset_tag,
        "name": ci.name,
        "category": ci.classification,
        "environment": ci.environment or "",
        "install_status": ci.status.value,
        "discovery_source": ci.discovery_source,
        "last_discovered": format_cmdb_timestamp(ci.last_discovered),
        "company": ci.organization or "",
    }


def decode_record(raw: object) -> ConfigurationItem:
    """Convert a Table API row into a :class:`ConfigurationItem`.

    Raises
    ------
    CMDBConflictError
        If the row is missing identity fields or carries unreadable values.

    """
    try:
        record = msgspec.convert(raw, type=TableRecord)
    except msgspec.ValidationError as exc:
        raise CMDBConflictError.malformed_response(str(exc)) from exc

    if not record.sys_id:
        raise CMDBConflictError.missing("sys_id")
    if not record.asset_tag:
        raise CMDBConflictError.missing("asset_tag")

    last_discovered = NEVER_DISCOVERED
    if record.last_discovered:
        try:
            last_discovered = parse_cmdb_timestamp(record.last_discovered)
        except ValueError as exc:
            raise CMDBConflictError.malformed_response(
                f"last_discovered={record.last_discovered!r}"
            ) from exc

    return ConfigurationItem(
        sys_id=record.sys_id,
        asset_tag=record.asset_tag,
        name=record.name or record.asset_tag,
        classification=record.category,
        environment=record.environment or None,
        status=CIStatus.parse(record.install_status or None),
        discovery_source=record.discovery_source,
        last_discovered=last_discovered,
        organization=record.company or None,
    )


class ServiceNowCMDBClient:
    """CMDB client speaking the ServiceNow REST Table API.

    Parameters
    ----------
    config
        Connection settings, including credentials.
    http_client
        Optional ``httpx.AsyncClient`` for testing. If not provided, the
        instance creates and owns its own client.

    Examples
    --------
    >>> import asyncio
    >>> from cmdbsync.cmdb import CMDBClientConfig, ServiceNowCMDBClient
    >>> config = CMDBClientConfig(
    ...     instance_url="https://acme.service-now.com",
    ...     username="integration",
    ...     password="secret",
    ... )
    >>> client = ServiceNowCMDBClient(config)
    >>> # ci = asyncio.run(client.find("A-1"))
    >>> asyncio.run(client.aclose())

    """

    def __init__(
        self,
        config: CMDBClientConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with configuration."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)
        self._headers = {
            "Accept": "application/json",
            "User-Agent": config.user_agent,
        }
        self._auth: httpx.Auth | None = None
        if config.auth is CMDBAuthMode.OAUTH:
            self._headers["Authorization"] = f"Bearer {config.oauth_token}"
        else:
            self._auth = httpx.BasicAuth(config.username or "", config.password or "")

    @property
    def config(self) -> CMDBClientConfig:
        """Read-only access to the client configuration."""
        return self._config

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def find(self, asset_tag: str) -> ConfigurationItem | None:
        """Query the CI table by asset tag.

        Raises
        ------
        CMDBConflictError
            If more than one row carries ``asset_tag``, the row returned
            carries a different asset tag, or the body is malformed.
        CMDBUnavailableError
            On timeouts, network failures, auth rejections and 5xx/429.

        """
        response = await self._send(
            "find",
            "GET",
            self._config.table_url,
            params={
                "sysparm_query": asset_tag_query(asset_tag),
                "sysparm_limit": str(_FIND_LIMIT),
                "sysparm_fields": ",".join(_RECORD_FIELDS),
                "sysparm_exclude_reference_link": "true",
            },
        )
        rows = self._result(response)
        if not isinstance(rows, list):
            raise CMDBConflictError.missing("result[]")
        if not rows:
            return None
        if len(rows) > 1:
            raise CMDBConflictError.duplicate_asset_tag(asset_tag, len(rows))
        ci = decode_record(rows[0])
        if ci.asset_tag != asset_tag:
            raise CMDBConflictError.mismatched_asset_tag(asset_tag, ci.asset_tag)
        return ci

    async def create(self, ci: ConfigurationItem) -> ConfigurationItem:
        """Insert ``ci`` into the CI table and return the stored row."""
        response = await self._send(
            "create",
            "POST",
            self._config.table_url,
            json=encode_record(ci.asset_tag, ci),
            params={"sysparm_exclude_reference_link": "true"},
        )
        return decode_record(self._single_result(response))

    async def update(
        self, asset_tag: str, ci: ConfigurationItem
    ) -> ConfigurationItem:
        """Patch the row stored under ``asset_tag`` with the fields of ``ci``.

        The row is addressed by ``ci.sys_id``; when that is absent the row is
        resolved with :meth:`find` first.
        """
        sys_id = ci.sys_id
        if sys_id is None:
            existing = await self.find(asset_tag)
            if existing is None or existing.sys_id is None:
                raise CMDBConflictError.not_found(asset_tag)
            sys_id = existing.sys_id

        response = await self._send(
            "update",
            "PATCH",
            f"{self._config.table_url}/{sys_id}",
            json=encode_record(asset_tag, ci),
            params={"sysparm_exclude_reference_link": "true"},
        )
        return decode_record(self._single_result(response))

    async def _send(
        self,
        operation: str,
        method: str,
        url: str,
        **kwargs: typ.Any,  # noqa: ANN401 - forwarded to httpx
    ) -> httpx.Response:
        """Perform a request, mapping transport failures to CMDB errors."""
        request_kwargs: dict[str, typ.Any] = {"headers": self._headers, **kwargs}
        if self._auth is not None:
            request_kwargs["auth"] = self._auth
        try:
            response = await self._client.request(method, url, **request_kwargs)
        except httpx.TimeoutException as exc:
            raise CMDBUnavailableError.timeout(operation) from exc
        except httpx.RequestError as exc:
            raise CMDBUnavailableError.network_error(str(exc)) from exc

        log_debug(
            logger, "CMDB %s %s %s -> %d", operation, method, url, response.status_code
        )
        self._check_response_errors(response)
        return response

    @staticmethod
    def _check_response_errors(response: httpx.Response) -> None:
        """Classify HTTP error statuses as retryable or fatal."""
        status = response.status_code
        if status < _HTTP_ERROR_STATUS_THRESHOLD:
            return
        if status in _AUTH_FAILURE_STATUSES:
            raise CMDBUnavailableError.auth_failed(status)
        if status == _HTTP_RATE_LIMITED or status >= _HTTP_SERVER_ERROR_THRESHOLD:
            raise CMDBUnavailableError.http_error(status)
        raise CMDBConflictError.rejected(status)

    @staticmethod
    def _result(response: httpx.Response) -> object:
        """Decode the JSON body and return its ``result`` member."""
        try:
            data = msgspec.json.decode(response.content)
        except msgspec.DecodeError as exc:
            raise CMDBConflictError.malformed_response(response.text) from exc
        if not isinstance(data, dict) or "result" not in data:
            raise CMDBConflictError.missing("result")
        return data["result"]

    def _single_result(self, response: httpx.Response) -> object:
        result = self._result(response)
        if not isinstance(result, dict):
            raise CMDBConflictError.missing("result{}")
        return result
