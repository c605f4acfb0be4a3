"""Broker selection for the reconciliation actors.

Dramatiq binds actors to the global broker when they are declared, so
:mod:`cmdbsync.queue.actor` calls :func:`ensure_broker_configured` first.
Workers normally inherit the broker set up by ``dramatiq`` itself; local runs
and the test suite fall back to an in-process ``StubBroker``.
"""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.stub import StubBroker

_STUB_ENV_VAR = "CMDBSYNC_ALLOW_STUB_BROKER"
_PYTEST_ENV_VARS = ("PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER", "PYTEST_ADDOPTS")
_TRUTHY = frozenset({"1", "true", "yes", "on"})

_lock = threading.Lock()
_configured = False


def _under_pytest() -> bool:
    if "pytest" in sys.modules:
        return True
    return any(name in os.environ for name in _PYTEST_ENV_VARS)


def stub_broker_allowed() -> bool:
    """Return True when an in-process ``StubBroker`` may stand in for a real one."""
    flag = os.environ.get(_STUB_ENV_VAR, "").strip().lower()
    return flag in _TRUTHY or _under_pytest()


def _current_broker() -> dramatiq.Broker | None:
    try:  # pragma: no cover - depends on installed broker extras
        return dramatiq.get_broker()
    except (ImportError, LookupError):
        # the default RabbitMQ broker needs pika
        return None


def ensure_broker_configured() -> None:
    """Make sure Dramatiq has a global broker.

    Safe to call from several threads; only the first call does any work.

    Raises
    ------
    RuntimeError
        If no broker can be loaded and stub brokers are not allowed.

    """
    global _configured

    with _lock:
        if _configured:
            return
        if _current_broker() is None:
            if not stub_broker_allowed():  # pragma: no cover - prod misconfiguration
                message = (
                    "No Dramatiq broker available. Configure a broker for the "
                    f"worker or set {_STUB_ENV_VAR}=1 for local runs."
                )
                raise RuntimeError(message)
            dramatiq.set_broker(StubBroker())
        _configured = True
