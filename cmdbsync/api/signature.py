"""HMAC signature verification for inbound event webhooks.

Senders sign the raw request body with a shared secret and send the digest
in a header, either bare hex or prefixed with the algorithm name
(``sha256=<hex>``).

Usage
-----
>>> import hashlib, hmac
>>> verifier = SignatureVerifier(SignatureConfig(secret="s3cret"))
>>> body = b'{"resource_id": "A-1"}'
>>> digest = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
>>> verifier.verify(body, f"sha256={digest}")

"""

from __future__ import annotations

import dataclasses as dc
import enum
import hmac
import os

from cmdbsync.api.errors import SignatureVerificationError
from cmdbsync.logging import get_logger, log_warning

__all__ = ["SignatureAlgorithm", "SignatureConfig", "SignatureVerifier"]

logger = get_logger(__name__)

DEFAULT_SIGNATURE_HEADER = "X-Signature-256"


class SignatureAlgorithm(enum.StrEnum):
    """Digest algorithms accepted for webhook signatures."""

    SHA256 = "sha256"
    SHA512 = "sha512"


@dc.dataclass(frozen=True, slots=True)
class SignatureConfig:
    """Shared-secret signature settings.

    Attributes
    ----------
    secret
        Shared HMAC key. Never logged.
    header
        Request header carrying the signature.
    algorithm
        Digest used for the HMAC.

    """

    secret: str = dc.field(repr=False)
    header: str = DEFAULT_SIGNATURE_HEADER
    algorithm: SignatureAlgorithm = SignatureAlgorithm.SHA256

    def __post_init__(self) -> None:
        """Reject empty secrets and header names."""
        if not self.secret:
            msg = "webhook signature secret must not be empty"
            raise ValueError(msg)
        if not self.header.strip():
            msg = "signature header name must not be empty"
            raise ValueError(msg)

    @classmethod
    def from_env(cls) -> SignatureConfig:
        """Create configuration from environment variables.

        Reads ``CMDBSYNC_WEBHOOK_SECRET`` (required),
        ``CMDBSYNC_SIGNATURE_HEADER`` and ``CMDBSYNC_SIGNATURE_ALGORITHM``.

        Raises
        ------
        ValueError
            If the secret is missing or the algorithm is not supported.

        """
        secret = os.environ.get("CMDBSYNC_WEBHOOK_SECRET", "")
        if not secret:
            msg = "CMDBSYNC_WEBHOOK_SECRET must be set to accept events"
            raise ValueError(msg)
        header = os.environ.get("CMDBSYNC_SIGNATURE_HEADER", "").strip()
        raw_algorithm = (
            os.environ.get("CMDBSYNC_SIGNATURE_ALGORITHM", "").strip().lower()
            or SignatureAlgorithm.SHA256.value
        )
        try:
            algorithm = SignatureAlgorithm(raw_algorithm)
        except ValueError as exc:
            supported = ", ".join(a.value for a in SignatureAlgorithm)
            msg = (
                "CMDBSYNC_SIGNATURE_ALGORITHM must be one of "
                f"{supported}, got: {raw_algorithm!r}"
            )
            raise ValueError(msg) from exc
        return cls(
            secret=secret,
            header=header or DEFAULT_SIGNATURE_HEADER,
            algorithm=algorithm,
        )


class SignatureVerifier:
    """Check request signatures against the configured shared secret."""

    def __init__(self, config: SignatureConfig) -> None:
        """Bind the verifier to ``config``."""
        self._config = config
        self._key = config.secret.encode()

    @property
    def header(self) -> str:
        """Return the header name the signature is read from."""
        return self._config.header

    def sign(self, body: bytes) -> str:
        """Return the prefixed signature for ``body``."""
        algorithm = self._config.algorithm
        digest = hmac.new(self._key, body, algorithm.value).hexdigest()
        return f"{algorithm.value}={digest}"

    def verify(self, body: bytes, signature: str | None) -> None:
        """Raise :class:`SignatureVerificationError` unless ``signature`` matches.

        Parameters
        ----------
        body
            Raw request body exactly as received.
        signature
            Header value, or ``None`` when the header was absent.

        """
        if not signature or not signature.strip():
            log_warning(logger, "Rejected event: missing %s header", self.header)
            raise SignatureVerificationError.missing(self.header)

        provided = signature.strip()
        prefix, sep, digest = provided.partition("=")
        if sep:
            if prefix.lower() != self._config.algorithm.value:
                log_warning(
                    logger,
                    "Rejected event: signature algorithm %r does not match %s",
                    prefix,
                    self._config.algorithm.value,
                )
                raise SignatureVerificationError.mismatch()
            provided = digest

        if not provided.isascii():
            log_warning(logger, "Rejected event: non-ASCII signature digest")
            raise SignatureVerificationError.mismatch()

        expected = hmac.new(self._key, body, self._config.algorithm.value).hexdigest()
        if not hmac.compare_digest(expected, provided.lower()):
            log_warning(
                logger,
                "Rejected event: invalid signature %s...",
                provided[:8],
            )
            raise SignatureVerificationError.mismatch()
