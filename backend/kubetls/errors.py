"""
Error taxonomy for TLS context construction.

Every failure is fatal to the build: errors propagate to the caller with the
specific reason preserved, nothing is retried or degraded.
"""
from enum import Enum
from typing import Optional


class MalformedReason(str, Enum):
    """Why a piece of key material was rejected."""

    CERTIFICATE_IN_KEY_SLOT = "certificate-in-key-slot"
    UNSUPPORTED_PEM_OBJECT = "unsupported-pem-object"
    INVALID_CERTIFICATE_BYTES = "invalid-certificate-bytes"
    INVALID_BASE64 = "invalid-base64"


class KubeTLSError(Exception):
    """Base class for all TLS context construction errors."""


class MalformedInput(KubeTLSError):
    """Parsing produced a structurally wrong or unsupported artifact."""

    def __init__(self, reason: MalformedReason, detail: str):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}")


class IOFailure(KubeTLSError):
    """A configured or default file could not be read."""

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"cannot read {path}: {detail}")


class CryptoProviderFailure(KubeTLSError):
    """The TLS layer rejected the assembled key or trust material."""

    def __init__(self, detail: str, source: Optional[str] = None):
        self.detail = detail
        self.source = source
        message = detail if source is None else f"{source}: {detail}"
        super().__init__(message)


class InvalidConfiguration(KubeTLSError):
    """The configuration object does not have the expected field types."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"invalid TLS configuration: {detail}")
