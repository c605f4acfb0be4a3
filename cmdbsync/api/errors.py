"""Domain exceptions and Falcon error handlers for the API layer.

Resources raise these exceptions; the handlers registered by
:func:`cmdbsync.api.app.create_app` translate them into JSON responses.

Usage
-----
Register error handlers on the Falcon app::

    from cmdbsync.api.errors import (
        InvalidInputError,
        handle_invalid_input,
    )

    app.add_error_handler(InvalidInputError, handle_invalid_input)

"""

from __future__ import annotations

import typing as typ

import falcon

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from cmdbsync.reconcile.errors import EventFailure

__all__ = [
    "EventProcessingError",
    "InvalidInputError",
    "SignatureVerificationError",
    "handle_event_processing_error",
    "handle_invalid_input",
    "handle_signature_verification",
]


class InvalidInputError(Exception):
    """Raised for client input errors that should map to HTTP 400.

    Attributes
    ----------
    reason
        Human-readable description of the problem.
    field
        Optional name of the offending input field.
    problems
        Per-field validation problems, already JSON-compatible.

    """

    def __init__(
        self,
        reason: str,
        *,
        field: str | None = None,
        problems: list[dict[str, str]] | None = None,
    ) -> None:
        """Initialize with a reason and optional field or problem details."""
        self.reason = reason
        self.field = field
        self.problems = problems or []
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)

    @classmethod
    def invalid_json(cls, detail: str) -> InvalidInputError:
        """Build an error for a body that is not valid JSON."""
        return cls(f"request body is not valid JSON: {detail}", field="body")

    @classmethod
    def from_failure(cls, failure: EventFailure) -> InvalidInputError:
        """Build an error from a validation failure."""
        return cls(
            failure.message,
            problems=[problem.to_dict() for problem in failure.problems],
        )


class SignatureVerificationError(Exception):
    """Raised when a request signature is missing or does not match."""

    @classmethod
    def missing(cls, header: str) -> SignatureVerificationError:
        """Build an error for an absent signature header."""
        return cls(f"missing {header} header")

    @classmethod
    def mismatch(cls) -> SignatureVerificationError:
        """Build an error for a signature that does not match the body."""
        return cls("signature does not match request body")


class EventProcessingError(Exception):
    """Raised when an accepted event fails after validation."""

    def __init__(self, failure: EventFailure) -> None:
        """Wrap ``failure`` for the 500 handler."""
        self.failure = failure
        super().__init__(failure.message)


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response."""
    resp.status = falcon.HTTP_400
    media: dict[str, typ.Any] = {
        "title": "Invalid input",
        "description": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    if ex.problems:
        media["problems"] = ex.problems
    resp.media = media


async def handle_signature_verification(
    _req: Request,
    resp: Response,
    ex: SignatureVerificationError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``SignatureVerificationError`` to an HTTP 401 JSON response."""
    resp.status = falcon.HTTP_401
    resp.media = {
        "title": "Invalid signature",
        "description": str(ex),
    }


async def handle_event_processing_error(
    _req: Request,
    resp: Response,
    ex: EventProcessingError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``EventProcessingError`` to an HTTP 500 JSON response.

    The body carries the failure kind, the stage reached and whether a
    retry may succeed, so callers can decide whether to resend.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        The exception wrapping the event failure.
    _params
        URI template parameters (unused).

    """
    resp.status = falcon.HTTP_500
    resp.media = {"title": "Event processing failed", **ex.failure.to_dict()}
