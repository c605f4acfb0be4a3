"""Inbound infrastructure change events."""

from __future__ import annotations

import enum
import typing as typ

import msgspec


class EventAction(enum.StrEnum):
    """Lifecycle actions reported by infrastructure tooling."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class InfrastructureEvent(msgspec.Struct, frozen=True, forbid_unknown_fields=True):
    """A single resource change emitted by IaC pipelines or cloud event buses.

    ``action`` stays a plain string so unrecognised actions survive decoding;
    the transformer maps them to an ``Unknown`` CI status.
    """

    resource_id: str
    resource_type: str
    action: str
    resource_name: str | None = None
    environment: str | None = None
    organization: str | None = None
    metadata: dict[str, typ.Any] = msgspec.field(default_factory=dict)


REQUIRED_FIELDS: tuple[str, ...] = ("resource_id", "resource_type", "action")
OPTIONAL_STRING_FIELDS: tuple[str, ...] = (
    "resource_name",
    "environment",
    "organization",
)
KNOWN_FIELDS: frozenset[str] = frozenset(InfrastructureEvent.__struct_fields__)
