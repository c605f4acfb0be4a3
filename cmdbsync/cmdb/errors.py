"""Exceptions raised by CMDB clients and their configuration."""

from __future__ import annotations

# Response preview length for error messages
_CONTENT_PREVIEW_LIMIT = 100


def _preview(content: str) -> str:
    if len(content) > _CONTENT_PREVIEW_LIMIT:
        return content[:_CONTENT_PREVIEW_LIMIT] + "..."
    return content


class CMDBError(Exception):
    """Base exception for all CMDB client failures."""


class CMDBUnavailableError(CMDBError):
    """Raised when the CMDB cannot be reached or refuses the caller.

    These failures are retryable: the same call may succeed on redelivery.

    Attributes
    ----------
    status_code
        HTTP status code from the CMDB response, if any.

    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def timeout(cls, operation: str) -> CMDBUnavailableError:
        """Return an error for a call that exceeded its time budget."""
        return cls(f"CMDB {operation} timed out")

    @classmethod
    def network_error(cls, detail: str) -> CMDBUnavailableError:
        """Return an error for DNS, connection or TLS failures."""
        return cls(f"CMDB network error: {detail}")

    @classmethod
    def auth_failed(cls, status_code: int) -> CMDBUnavailableError:
        """Return an error for rejected credentials."""
        return cls(
            f"CMDB rejected credentials (HTTP {status_code})", status_code=status_code
        )

    @classmethod
    def http_error(cls, status_code: int) -> CMDBUnavailableError:
        """Return an error for throttling or server-side failures."""
        return cls(f"CMDB HTTP {status_code}", status_code=status_code)


class CMDBConflictError(CMDBError):
    """Raised when the CMDB answers with something the engine cannot trust.

    These failures are fatal for the event and need manual review.
    """

    @classmethod
    def malformed_response(cls, detail: str) -> CMDBConflictError:
        """Return an error for a response body that cannot be decoded."""
        return cls(f"CMDB response malformed: {_preview(detail)}")

    @classmethod
    def missing(cls, field: str) -> CMDBConflictError:
        """Return an error for a response missing an expected field."""
        return cls(f"CMDB response missing expected field: {field}")

    @classmethod
    def duplicate_asset_tag(cls, asset_tag: str, count: int) -> CMDBConflictError:
        """Return an error when several CIs share one asset tag."""
        return cls(f"CMDB holds {count} records for asset_tag {asset_tag!r}")

    @classmethod
    def mismatched_asset_tag(cls, requested: str, returned: str) -> CMDBConflictError:
        """Return an error when a lookup answers with another asset tag's row."""
        return cls(
            f"CMDB lookup for asset_tag {requested!r} returned {returned!r}"
        )

    @classmethod
    def already_exists(cls, asset_tag: str) -> CMDBConflictError:
        """Return an error when a create targets an existing asset tag."""
        return cls(f"CMDB already holds a record for asset_tag {asset_tag!r}")

    @classmethod
    def not_found(cls, asset_tag: str) -> CMDBConflictError:
        """Return an error when an update targets an absent asset tag."""
        return cls(f"CMDB has no record for asset_tag {asset_tag!r}")

    @classmethod
    def rejected(cls, status_code: int) -> CMDBConflictError:
        """Return an error for client-side HTTP rejections."""
        return cls(f"CMDB rejected the request (HTTP {status_code})")


class CMDBConfigError(CMDBError):
    """Raised when CMDB client configuration is invalid."""

    @classmethod
    def missing_instance_url(cls) -> CMDBConfigError:
        """Return an error when no instance URL is configured."""
        return cls("CMDBSYNC_CMDB_INSTANCE_URL environment variable is required")

    @classmethod
    def missing_credentials(cls, auth: str, variables: str) -> CMDBConfigError:
        """Return an error when credentials for ``auth`` are absent."""
        return cls(f"{auth} authentication requires {variables}")

    @classmethod
    def invalid_auth(cls, value: str) -> CMDBConfigError:
        """Return an error for an unrecognised auth mode."""
        return cls(f"Invalid CMDB auth mode {value!r}. Valid options are: basic, oauth")

    @classmethod
    def invalid_backend(cls, value: str) -> CMDBConfigError:
        """Return an error for an unrecognised client backend."""
        return cls(
            f"Invalid CMDB backend {value!r}. Valid options are: memory, servicenow"
        )

    @classmethod
    def invalid_timeout(cls, value: str) -> CMDBConfigError:
        """Return an error for a non-positive or non-numeric timeout."""
        return cls(f"Invalid CMDB timeout {value!r}. Must be a positive number")
