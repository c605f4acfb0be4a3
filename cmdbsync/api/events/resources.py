"""Webhook resources that feed infrastructure events into reconciliation.

``POST /events`` reconciles one event and answers with the stored CI.
``POST /events/batch`` reconciles a JSON array of events concurrently and
answers with one result per event, in input order.

Both resources verify the request signature over the raw body before the
body is parsed.

Usage
-----
Register the resources on the Falcon app::

    deps = EventResourceDependencies(processor=processor, verifier=verifier)
    app.add_route("/events", EventResource(deps))
    app.add_route("/events/batch", BatchEventResource(deps))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon
import msgspec

from cmdbsync.api.errors import EventProcessingError, InvalidInputError
from cmdbsync.reconcile.errors import FailureKind

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from cmdbsync.api.signature import SignatureVerifier
    from cmdbsync.reconcile.processor import ReconciliationProcessor

__all__ = ["BatchEventResource", "EventResource", "EventResourceDependencies"]


@dc.dataclass(frozen=True, slots=True)
class EventResourceDependencies:
    """Collaborators shared by the event resources.

    Attributes
    ----------
    processor
        Reconciliation processor that handles each event.
    verifier
        Signature verifier for the raw request body.

    """

    processor: ReconciliationProcessor
    verifier: SignatureVerifier


class _SignedJSONResource:
    """Read, verify and decode a signed JSON request body."""

    def __init__(self, dependencies: EventResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._processor = dependencies.processor
        self._verifier = dependencies.verifier

    async def _read_verified_json(self, req: Request) -> object:
        body = await req.stream.read()
        self._verifier.verify(body, req.get_header(self._verifier.header))
        try:
            return msgspec.json.decode(body)
        except msgspec.DecodeError as exc:
            raise InvalidInputError.invalid_json(str(exc)) from exc


class EventResource(_SignedJSONResource):
    """``POST /events``: reconcile a single infrastructure event."""

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST request carrying one event.

        Parameters
        ----------
        req
            Falcon request object.
        resp
            Falcon response object.

        Raises
        ------
        SignatureVerificationError
            If the signature header is missing or wrong (HTTP 401).
        InvalidInputError
            If the body is not JSON or the event fails validation (HTTP 400).
        EventProcessingError
            If the event fails after validation (HTTP 500).

        """
        payload = await self._read_verified_json(req)
        outcome = await self._processor.process(payload)

        failure = outcome.failure
        if failure is not None:
            if failure.kind is FailureKind.VALIDATION:
                raise InvalidInputError.from_failure(failure)
            raise EventProcessingError(failure)

        resp.media = outcome.to_dict()
        resp.status = falcon.HTTP_200


class BatchEventResource(_SignedJSONResource):
    """``POST /events/batch``: reconcile an array of events concurrently."""

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST request carrying a JSON array of events.

        Individual event failures are reported in the per-event results;
        only envelope problems (signature, JSON, not an array) fail the
        request as a whole.
        """
        payload = await self._read_verified_json(req)
        if not isinstance(payload, list):
            reason = "expected a JSON array of events"
            raise InvalidInputError(reason, field="body")

        outcomes = await self._processor.process_batch(payload)
        failed = sum(1 for outcome in outcomes if not outcome.succeeded)
        resp.media = {
            "total": len(outcomes),
            "succeeded": len(outcomes) - failed,
            "failed": failed,
            "results": [outcome.to_dict() for outcome in outcomes],
        }
        resp.status = falcon.HTTP_200
