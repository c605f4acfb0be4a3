"""Factory for creating CMDBClient implementations from environment configuration."""

from __future__ import annotations

import os
import typing as typ

from cmdbsync.cmdb.errors import CMDBConfigError
from cmdbsync.cmdb.memory import InMemoryCMDBClient

if typ.TYPE_CHECKING:
    from cmdbsync.cmdb.protocol import CMDBClient

_VALID_BACKENDS = frozenset({"memory", "servicenow"})
_DEFAULT_BACKEND = "servicenow"


def create_cmdb_client() -> CMDBClient:
    """Create a CMDBClient based on environment configuration.

    Reads ``CMDBSYNC_CMDB_BACKEND`` (``servicenow`` by default, or
    ``memory``). The ServiceNow backend additionally reads the variables
    documented on :meth:`CMDBClientConfig.from_env`.

    Returns
    -------
    CMDBClient
        A freshly constructed client owned by the caller.

    Raises
    ------
    CMDBConfigError
        If the backend name or its configuration is invalid.

    """
    backend = os.environ.get("CMDBSYNC_CMDB_BACKEND", _DEFAULT_BACKEND)
    backend = backend.strip().lower() or _DEFAULT_BACKEND
    if backend not in _VALID_BACKENDS:
        raise CMDBConfigError.invalid_backend(backend)

    if backend == "memory":
        return InMemoryCMDBClient()

    from cmdbsync.cmdb.config import CMDBClientConfig
    from cmdbsync.cmdb.servicenow import ServiceNowCMDBClient

    return ServiceNowCMDBClient(CMDBClientConfig.from_env())
