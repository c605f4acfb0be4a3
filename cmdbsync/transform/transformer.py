"""Map infrastructure events onto canonical Configuration Items."""

from __future__ import annotations

import datetime as dt
import types
import typing as typ

from cmdbsync.cmdb.models import CIStatus, ConfigurationItem
from cmdbsync.common.time import utcnow
from cmdbsync.events.models import EventAction
from cmdbsync.transform.errors import TransformError

if typ.TYPE_CHECKING:
    from cmdbsync.events.models import InfrastructureEvent

Clock: typ.TypeAlias = typ.Callable[[], dt.datetime]

DEFAULT_DISCOVERY_SOURCE = "cmdbsync"

ACTION_STATUS: typ.Mapping[EventAction, CIStatus] = types.MappingProxyType(
    {
        EventAction.CREATE: CIStatus.INSTALLED,
        EventAction.UPDATE: CIStatus.IN_USE,
        EventAction.DELETE: CIStatus.RETIRED,
    }
)


def status_for_action(action: str) -> CIStatus:
    """Return the CI status for an event action.

    The mapping is total: actions outside the fixed table map to
    ``CIStatus.UNKNOWN``. Matching is exact, so ``"Delete"`` is unknown.

    Examples
    --------
    >>> status_for_action("delete")
    <CIStatus.RETIRED: 'Retired'>
    >>> status_for_action("unknown-action")
    <CIStatus.UNKNOWN: 'Unknown'>
    >>> status_for_action("DELETE")
    <CIStatus.UNKNOWN: 'Unknown'>

    """
    try:
        parsed = EventAction(action)
    except ValueError:
        return CIStatus.UNKNOWN
    return ACTION_STATUS[parsed]


def _required(value: str, field: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise TransformError.blank_field(field)
    return stripped


def _optional(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class CITransformer:
    """Pure mapper from :class:`InfrastructureEvent` to :class:`ConfigurationItem`.

    Parameters
    ----------
    discovery_source
        Value written to every CI's ``discovery_source``.
    clock
        Source of processing timestamps; must return aware datetimes.

    """

    def __init__(
        self,
        *,
        discovery_source: str = DEFAULT_DISCOVERY_SOURCE,
        clock: Clock = utcnow,
    ) -> None:
        """Store the discovery source and clock."""
        self._discovery_source = discovery_source
        self._clock = clock

    def transform(self, event: InfrastructureEvent) -> ConfigurationItem:
        """Build the canonical CI for ``event``.

        Raises
        ------
        TransformError
            If a required field is blank or the clock returns a naive time.

        """
        asset_tag = _required(event.resource_id, "resource_id")
        classification = _required(event.resource_type, "resource_type")

        now = self._clock()
        if now.tzinfo is None:
            raise TransformError.naive_clock()

        return ConfigurationItem(
            asset_tag=asset_tag,
            name=_optional(event.resource_name) or asset_tag,
            classification=classification,
            environment=_optional(event.environment),
            status=status_for_action(event.action),
            discovery_source=self._discovery_source,
            last_discovered=now.astimezone(dt.UTC),
            organization=_optional(event.organization),
        )
