"""Boundary validation for inbound infrastructure events.

Validation is a pure check: it never performs I/O and never logs. It fails
closed, so any missing or malformed required field rejects the payload before
the transformer sees it.

Usage
-----
>>> result = validate_event_payload({"resource_type": "ec2", "action": "create"})
>>> result.valid
False
>>> [p.field for p in result.problems]
['resource_id']

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import enum
import typing as typ

import msgspec

from cmdbsync.events.errors import EventValidationError
from cmdbsync.events.models import (
    KNOWN_FIELDS,
    OPTIONAL_STRING_FIELDS,
    REQUIRED_FIELDS,
    InfrastructureEvent,
)

PAYLOAD_FIELD = "<payload>"


class ProblemKind(enum.StrEnum):
    """Why a field failed validation."""

    MISSING = "missing"
    INVALID = "invalid"


@dc.dataclass(frozen=True, slots=True)
class FieldProblem:
    """A single field-level validation failure."""

    field: str
    kind: ProblemKind
    detail: str

    def to_dict(self) -> dict[str, str]:
        """Return a JSON-compatible representation."""
        return {"field": self.field, "kind": str(self.kind), "detail": self.detail}


@dc.dataclass(frozen=True, slots=True)
class EventValidationResult:
    """Outcome of validating a raw payload."""

    problems: tuple[FieldProblem, ...] = ()

    @property
    def valid(self) -> bool:
        """Return True when no problems were found."""
        return not self.problems

    @property
    def fields(self) -> tuple[str, ...]:
        """Return the names of the offending fields in report order."""
        return tuple(problem.field for problem in self.problems)


def _check_required(
    payload: cabc.Mapping[str, typ.Any], field: str
) -> FieldProblem | None:
    if field not in payload or payload[field] is None:
        return FieldProblem(field, ProblemKind.MISSING, "field is required")
    value = payload[field]
    if not isinstance(value, str):
        return FieldProblem(
            field, ProblemKind.INVALID, f"expected string, got {type(value).__name__}"
        )
    if not value.strip():
        return FieldProblem(field, ProblemKind.MISSING, "field must not be blank")
    return None


def _check_optional_string(
    payload: cabc.Mapping[str, typ.Any], field: str
) -> FieldProblem | None:
    value = payload.get(field)
    if value is None or isinstance(value, str):
        return None
    return FieldProblem(
        field, ProblemKind.INVALID, f"expected string, got {type(value).__name__}"
    )


def _check_metadata(payload: cabc.Mapping[str, typ.Any]) -> FieldProblem | None:
    value = payload.get("metadata")
    if value is None or isinstance(value, cabc.Mapping):
        return None
    return FieldProblem(
        "metadata", ProblemKind.INVALID, f"expected object, got {type(value).__name__}"
    )


def _unknown_fields(payload: cabc.Mapping[str, typ.Any]) -> list[FieldProblem]:
    return [
        FieldProblem(str(key), ProblemKind.INVALID, "unknown field")
        for key in sorted(str(k) for k in payload if k not in KNOWN_FIELDS)
    ]


def validate_event_payload(payload: object) -> EventValidationResult:
    """Check an inbound payload against the InfrastructureEvent contract.

    Parameters
    ----------
    payload
        Decoded JSON body. Anything other than a mapping is rejected whole.

    Returns
    -------
    EventValidationResult
        ``valid`` plus the list of missing or invalid fields. Required fields
        are reported first, in declaration order.

    """
    if not isinstance(payload, cabc.Mapping):
        return EventValidationResult(
            problems=(
                FieldProblem(
                    PAYLOAD_FIELD,
                    ProblemKind.INVALID,
                    f"expected JSON object, got {type(payload).__name__}",
                ),
            )
        )

    mapping = typ.cast("cabc.Mapping[str, typ.Any]", payload)
    checks = [_check_required(mapping, field) for field in REQUIRED_FIELDS]
    checks.extend(
        _check_optional_string(mapping, field) for field in OPTIONAL_STRING_FIELDS
    )
    checks.append(_check_metadata(mapping))
    problems = [problem for problem in checks if problem is not None]
    problems.extend(_unknown_fields(mapping))
    return EventValidationResult(problems=tuple(problems))


def decode_event(payload: object) -> InfrastructureEvent:
    """Validate ``payload`` and convert it into an :class:`InfrastructureEvent`.

    Raises
    ------
    EventValidationError
        If the payload fails validation.

    """
    result = validate_event_payload(payload)
    if not result.valid:
        raise EventValidationError(result.problems)
    data = dict(typ.cast("cabc.Mapping[str, typ.Any]", payload))
    if data.get("metadata") is None:
        data.pop("metadata", None)
    try:
        return msgspec.convert(data, type=InfrastructureEvent)
    except msgspec.ValidationError as exc:
        problem = FieldProblem(PAYLOAD_FIELD, ProblemKind.INVALID, str(exc))
        raise EventValidationError((problem,)) from exc
