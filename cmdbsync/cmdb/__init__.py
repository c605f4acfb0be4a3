"""CMDB collaborator: CI model, client protocol and implementations."""

from __future__ import annotations

from .config import CMDBAuthMode, CMDBClientConfig
from .errors import (
    CMDBConfigError,
    CMDBConflictError,
    CMDBError,
    CMDBUnavailableError,
)
from .factory import create_cmdb_client
from .memory import CallCounts, InMemoryCMDBClient
from .models import NEVER_DISCOVERED, CIStatus, ConfigurationItem, ci_to_dict
from .protocol import CMDBClient
from .servicenow import ServiceNowCMDBClient

__all__ = [
    "NEVER_DISCOVERED",
    "CIStatus",
    "CMDBAuthMode",
    "CMDBClient",
    "CMDBClientConfig",
    "CMDBConfigError",
    "CMDBConflictError",
    "CMDBError",
    "CMDBUnavailableError",
    "CallCounts",
    "ConfigurationItem",
    "InMemoryCMDBClient",
    "ServiceNowCMDBClient",
    "ci_to_dict",
    "create_cmdb_client",
]
