"""Event to Configuration Item mapping."""

from __future__ import annotations

from .errors import TransformError
from .transformer import (
    ACTION_STATUS,
    DEFAULT_DISCOVERY_SOURCE,
    CITransformer,
    status_for_action,
)

__all__ = [
    "ACTION_STATUS",
    "DEFAULT_DISCOVERY_SOURCE",
    "CITransformer",
    "TransformError",
    "status_for_action",
]
