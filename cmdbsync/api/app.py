"""Application factory for the cmdbsync Falcon ASGI application.

This module provides ``create_app()`` which builds the Falcon ASGI
application with health endpoints and, when a processor and signature
verifier are supplied, the event ingestion endpoints.

Usage
-----
Create a health-only app::

    app = create_app()

Create a full app with event endpoints::

    from cmdbsync.api.app import AppDependencies, create_app

    deps = AppDependencies(processor=processor, verifier=verifier)
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from cmdbsync.api.errors import (
    EventProcessingError,
    InvalidInputError,
    SignatureVerificationError,
    handle_event_processing_error,
    handle_invalid_input,
    handle_signature_verification,
)
from cmdbsync.api.health.resources import HealthResource, ReadyResource

if typ.TYPE_CHECKING:
    from cmdbsync.api.middleware import LifespanManager
    from cmdbsync.api.signature import SignatureVerifier
    from cmdbsync.reconcile.processor import ReconciliationProcessor

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    When ``processor`` and ``verifier`` are both provided the application
    registers ``POST /events`` and ``POST /events/batch``. Otherwise only
    the probes are registered and ``/ready`` reports unavailable.

    Attributes
    ----------
    processor
        Reconciliation processor handling inbound events.
    verifier
        Signature verifier for webhook bodies.
    lifespan
        Startup and shutdown hooks for resources the app owns.

    """

    processor: ReconciliationProcessor | None = None
    verifier: SignatureVerifier | None = None
    lifespan: LifespanManager | None = None


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None`` or incomplete,
        only health endpoints are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    middleware: list[object] = []
    if dependencies is not None and dependencies.lifespan is not None:
        middleware.append(dependencies.lifespan)

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    processor = dependencies.processor if dependencies is not None else None
    verifier = dependencies.verifier if dependencies is not None else None
    accepting_events = processor is not None and verifier is not None

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(accepting_events=accepting_events))

    if processor is not None and verifier is not None:
        from cmdbsync.api.events.resources import (
            BatchEventResource,
            EventResource,
            EventResourceDependencies,
        )

        deps = EventResourceDependencies(processor=processor, verifier=verifier)
        app.add_route("/events", EventResource(deps))
        app.add_route("/events/batch", BatchEventResource(deps))

    app.add_error_handler(SignatureVerificationError, handle_signature_verification)
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(EventProcessingError, handle_event_processing_error)

    return app
