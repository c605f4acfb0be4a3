"""Configuration Item model shared by the transformer and CMDB clients."""

from __future__ import annotations

import datetime as dt
import enum

import msgspec


class CIStatus(enum.StrEnum):
    """Lifecycle status recorded on a Configuration Item."""

    INSTALLED = "Installed"
    IN_USE = "InUse"
    RETIRED = "Retired"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, label: str | None) -> CIStatus:
        """Return the status for ``label``, or UNKNOWN if unrecognised."""
        if label is None:
            return cls.UNKNOWN
        try:
            return cls(label)
        except ValueError:
            return cls.UNKNOWN


class ConfigurationItem(msgspec.Struct, frozen=True, kw_only=True):
    """A CMDB record representing one infrastructure resource.

    Attributes
    ----------
    asset_tag
        Unique upsert key. At most one CI exists per asset tag.
    name
        Display name.
    classification
        Resource class, taken from the event's resource type.
    environment
        Deployment environment (``prod``, ``staging``...), if known.
    status
        Lifecycle status derived from the triggering action.
    discovery_source
        Name of the system that reported the CI.
    last_discovered
        Aware UTC time the CI was last reconciled.
    organization
        Owning organisation, if reported.
    sys_id
        Identifier assigned by the CMDB; ``None`` until the CI is stored.

    """

    asset_tag: str
    name: str
    classification: str
    status: CIStatus
    discovery_source: str
    last_discovered: dt.datetime
    environment: str | None = None
    organization: str | None = None
    sys_id: str | None = None


# Placeholder discovery time for records created outside the engine.
NEVER_DISCOVERED = dt.datetime(1970, 1, 1, tzinfo=dt.UTC)


def ci_to_dict(ci: ConfigurationItem) -> dict[str, object]:
    """Return a JSON-compatible representation of ``ci``."""
    return msgspec.to_builtins(ci)
