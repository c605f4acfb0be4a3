"""Transformer error types."""

from __future__ import annotations


class TransformError(Exception):
    """Raised when a validated event cannot be mapped to a CI.

    Validated input never triggers this; seeing it means an upstream
    guarantee was broken and the event needs investigation.
    """

    @classmethod
    def blank_field(cls, field: str) -> TransformError:
        """Return an error for a required field that reached the mapper empty."""
        return cls(f"{field} must be a non-blank string")

    @classmethod
    def naive_clock(cls) -> TransformError:
        """Return an error when the processing clock yields a naive datetime."""
        return cls("processing clock must return timezone-aware datetimes")
