"""Falcon ASGI surface: event webhooks and health probes."""

from __future__ import annotations

from .app import AppDependencies, create_app
from .signature import SignatureAlgorithm, SignatureConfig, SignatureVerifier

__all__ = [
    "AppDependencies",
    "SignatureAlgorithm",
    "SignatureConfig",
    "SignatureVerifier",
    "create_app",
]
