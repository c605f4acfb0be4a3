"""Configuration for CMDB table API clients."""

from __future__ import annotations

import dataclasses
import enum
import os

from cmdbsync.cmdb.errors import CMDBConfigError

_DEFAULT_TABLE = "cmdb_ci"
_DEFAULT_TIMEOUT_S = 10.0
_DEFAULT_USER_AGENT = "cmdbsync/0.1"


class CMDBAuthMode(enum.StrEnum):
    """Authentication schemes supported by the table API client."""

    BASIC = "basic"
    OAUTH = "oauth"


@dataclasses.dataclass(frozen=True, slots=True)
class CMDBClientConfig:
    """Connection settings for a ServiceNow-style CMDB.

    Attributes
    ----------
    instance_url
        Base URL of the CMDB instance, e.g. ``https://acme.service-now.com``.
    table
        CI table written by the engine.
    auth
        Authentication scheme.
    username, password
        Basic-auth credentials.
    oauth_token
        Bearer token for OAuth.
    timeout_s
        Transport timeout applied by the HTTP client.

    """

    instance_url: str
    table: str = _DEFAULT_TABLE
    auth: CMDBAuthMode = CMDBAuthMode.BASIC
    username: str | None = None
    password: str | None = dataclasses.field(default=None, repr=False)
    oauth_token: str | None = dataclasses.field(default=None, repr=False)
    timeout_s: float = _DEFAULT_TIMEOUT_S
    user_agent: str = _DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        """Reject configurations that cannot authenticate."""
        if not self.instance_url.strip():
            raise CMDBConfigError.missing_instance_url()
        if self.auth is CMDBAuthMode.BASIC and not (self.username and self.password):
            raise CMDBConfigError.missing_credentials(
                "basic",
                "CMDBSYNC_CMDB_USERNAME and CMDBSYNC_CMDB_PASSWORD",
            )
        if self.auth is CMDBAuthMode.OAUTH and not self.oauth_token:
            raise CMDBConfigError.missing_credentials(
                "oauth", "CMDBSYNC_CMDB_OAUTH_TOKEN"
            )

    @property
    def table_url(self) -> str:
        """Return the collection URL of the CI table."""
        return f"{self.instance_url.rstrip('/')}/api/now/table/{self.table}"

    @staticmethod
    def _parse_auth_from_env() -> CMDBAuthMode:
        raw = os.environ.get("CMDBSYNC_CMDB_AUTH", CMDBAuthMode.BASIC.value)
        try:
            return CMDBAuthMode(raw.strip().lower())
        except ValueError as exc:
            raise CMDBConfigError.invalid_auth(raw) from exc

    @staticmethod
    def _parse_timeout_from_env() -> float:
        raw = os.environ.get("CMDBSYNC_CMDB_TIMEOUT_S")
        if raw is None or not raw.strip():
            return _DEFAULT_TIMEOUT_S
        try:
            timeout = float(raw)
        except ValueError as exc:
            raise CMDBConfigError.invalid_timeout(raw) from exc
        if timeout <= 0:
            raise CMDBConfigError.invalid_timeout(raw)
        return timeout

    @classmethod
    def from_env(cls) -> CMDBClientConfig:
        """Build configuration from environment variables.

        Reads the following environment variables:

        - ``CMDBSYNC_CMDB_INSTANCE_URL``: Required instance base URL
        - ``CMDBSYNC_CMDB_TABLE``: Optional CI table (default ``cmdb_ci``)
        - ``CMDBSYNC_CMDB_AUTH``: ``basic`` (default) or ``oauth``
        - ``CMDBSYNC_CMDB_USERNAME`` / ``CMDBSYNC_CMDB_PASSWORD``: basic auth
        - ``CMDBSYNC_CMDB_OAUTH_TOKEN``: OAuth bearer token
        - ``CMDBSYNC_CMDB_TIMEOUT_S``: Optional transport timeout in seconds

        Raises
        ------
        CMDBConfigError
            If required variables are missing or values are invalid.

        """
        instance_url = os.environ.get("CMDBSYNC_CMDB_INSTANCE_URL", "").strip()
        if not instance_url:
            raise CMDBConfigError.missing_instance_url()

        table = os.environ.get("CMDBSYNC_CMDB_TABLE", "").strip() or _DEFAULT_TABLE
        return cls(
            instance_url=instance_url,
            table=table,
            auth=cls._parse_auth_from_env(),
            username=os.environ.get("CMDBSYNC_CMDB_USERNAME") or None,
            password=os.environ.get("CMDBSYNC_CMDB_PASSWORD") or None,
            oauth_token=os.environ.get("CMDBSYNC_CMDB_OAUTH_TOKEN") or None,
            timeout_s=cls._parse_timeout_from_env(),
        )
