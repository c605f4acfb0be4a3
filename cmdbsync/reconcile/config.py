"""Configuration for the reconciliation processor.

Usage
-----
Create a configuration with defaults:

>>> config = ProcessorConfig()
>>> config.call_timeout_s
10.0

Or load from environment variables:

>>> import os
>>> os.environ["CMDBSYNC_MAX_CONCURRENCY"] = "4"
>>> ProcessorConfig.from_env().max_concurrency
4

"""

from __future__ import annotations

import dataclasses as dc
import os

from cmdbsync.reconcile.failures import DEFAULT_FAILURE_LOG_MAX
from cmdbsync.transform.transformer import DEFAULT_DISCOVERY_SOURCE


@dc.dataclass(frozen=True, slots=True)
class ProcessorConfig:
    """Tuning knobs for :class:`ReconciliationProcessor`.

    Attributes
    ----------
    call_timeout_s
        Upper bound on each CMDB call. A call that exceeds it fails the event
        as retryable.
    max_concurrency
        Maximum number of events processed at once by ``process_batch``.
    discovery_source
        Value stamped on every CI's ``discovery_source``.
    failure_log_max
        Failures kept by the in-memory failure log when no database is
        configured; the oldest is evicted beyond this.

    """

    call_timeout_s: float = 10.0
    max_concurrency: int = 16
    discovery_source: str = DEFAULT_DISCOVERY_SOURCE
    failure_log_max: int = DEFAULT_FAILURE_LOG_MAX

    def __post_init__(self) -> None:
        """Validate numeric bounds."""
        if self.call_timeout_s <= 0:
            msg = f"call_timeout_s must be positive, got: {self.call_timeout_s}"
            raise ValueError(msg)
        if self.max_concurrency < 1:
            msg = f"max_concurrency must be positive, got: {self.max_concurrency}"
            raise ValueError(msg)
        if self.failure_log_max < 1:
            msg = f"failure_log_max must be positive, got: {self.failure_log_max}"
            raise ValueError(msg)

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        """Read a positive integer env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @staticmethod
    def _parse_positive_float(env_var: str, default: float) -> float:
        """Read a positive float env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            msg = f"{env_var} must be a number, got: {raw!r}"
            raise ValueError(msg) from exc
        if value <= 0:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @classmethod
    def from_env(cls) -> ProcessorConfig:
        """Create configuration from environment variables.

        Reads the following environment variables:

        - ``CMDBSYNC_CALL_TIMEOUT_S``: Per-call CMDB timeout in seconds.
        - ``CMDBSYNC_MAX_CONCURRENCY``: Batch concurrency limit.
        - ``CMDBSYNC_DISCOVERY_SOURCE``: Discovery source stamped on CIs.
        - ``CMDBSYNC_FAILURE_LOG_MAX``: In-memory failure log capacity.

        Raises
        ------
        ValueError
            If a numeric variable is malformed or not positive.

        """
        discovery_source = os.environ.get("CMDBSYNC_DISCOVERY_SOURCE", "").strip()
        return cls(
            call_timeout_s=cls._parse_positive_float("CMDBSYNC_CALL_TIMEOUT_S", 10.0),
            max_concurrency=cls._parse_positive_int("CMDBSYNC_MAX_CONCURRENCY", 16),
            discovery_source=discovery_source or DEFAULT_DISCOVERY_SOURCE,
            failure_log_max=cls._parse_positive_int(
                "CMDBSYNC_FAILURE_LOG_MAX", DEFAULT_FAILURE_LOG_MAX
            ),
        )
