"""Liveness and readiness probes.

``/health`` reports that the process is up. ``/ready`` reports whether the
service can reconcile events: it answers 503 until event ingestion is wired
(a processor and a signature verifier are configured).

Usage
-----
Register health endpoints on the Falcon app::

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(accepting_events=True))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe reflecting whether events can be accepted.

    Parameters
    ----------
    accepting_events
        True when the event endpoints are registered.

    """

    def __init__(self, *, accepting_events: bool) -> None:
        """Record whether event ingestion is available."""
        self._accepting_events = accepting_events

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with readiness status.

        """
        if self._accepting_events:
            resp.media = {"status": "ready"}
            resp.status = HTTPStatus.OK
            return
        resp.media = {"status": "unavailable", "reason": "event ingestion disabled"}
        resp.status = HTTPStatus.SERVICE_UNAVAILABLE
