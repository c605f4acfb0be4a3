"""Inbound event model and boundary validation."""

from __future__ import annotations

from .errors import EventValidationError
from .models import EventAction, InfrastructureEvent
from .validation import (
    EventValidationResult,
    FieldProblem,
    ProblemKind,
    decode_event,
    validate_event_payload,
)

__all__ = [
    "EventAction",
    "EventValidationError",
    "EventValidationResult",
    "FieldProblem",
    "InfrastructureEvent",
    "ProblemKind",
    "decode_event",
    "validate_event_payload",
]
