"""CMDBClient protocol for CI table access."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from cmdbsync.cmdb.models import ConfigurationItem


@typ.runtime_checkable
class CMDBClient(typ.Protocol):
    """Protocol for the CMDB collaborator used by the reconciliation engine.

    Implementations surface transport and authentication failures as
    ``CMDBUnavailableError`` and untrustworthy responses as
    ``CMDBConflictError``. The protocol is runtime_checkable so factories and
    tests can assert conformance.

    Examples
    --------
    >>> from cmdbsync.cmdb import CMDBClient, InMemoryCMDBClient
    >>> isinstance(InMemoryCMDBClient(), CMDBClient)
    True

    """

    async def find(self, asset_tag: str) -> ConfigurationItem | None:
        """Return the CI stored under ``asset_tag``, or None if absent."""
        ...

    async def create(self, ci: ConfigurationItem) -> ConfigurationItem:
        """Store a new CI and return it as persisted."""
        ...

    async def update(
        self, asset_tag: str, ci: ConfigurationItem
    ) -> ConfigurationItem:
        """Replace the CI stored under ``asset_tag`` and return it."""
        ...

    async def aclose(self) -> None:
        """Release any resources owned by the client."""
        ...
