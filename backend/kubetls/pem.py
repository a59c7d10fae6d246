"""
PEM and X.509 decoding.

Turns raw bytes (decoded inline data or file contents) into a private key
or a list of certificates. The first PEM object of a key stream is
classified before it is parsed, so a certificate pasted into the key field
gets its own diagnostic instead of a generic parse error.
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterator, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from .errors import MalformedInput, MalformedReason


logger = logging.getLogger(__name__)

PEM_MARKER = b"-----BEGIN "

_PEM_BLOCK = re.compile(
    rb"-----BEGIN ([A-Z0-9 ]+)-----\r?\n.*?-----END \1-----",
    re.DOTALL,
)

# Labels of unencrypted key-pair blocks
KEY_PAIR_LABELS = frozenset({
    "RSA PRIVATE KEY",
    "EC PRIVATE KEY",
    "DSA PRIVATE KEY",
    "PRIVATE KEY",
})

CERTIFICATE_LABELS = frozenset({
    "CERTIFICATE",
    "X509 CERTIFICATE",
    "TRUSTED CERTIFICATE",
})

# Private keys usable for TLS client authentication
TLS_PRIVATE_KEY_TYPES = (
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    dsa.DSAPrivateKey,
    ed25519.Ed25519PrivateKey,
    ed448.Ed448PrivateKey,
)


@dataclass(frozen=True)
class PemKeyPair:
    """An unencrypted private key block."""

    label: str
    block: bytes


@dataclass(frozen=True)
class PemCertificateHolder:
    """A certificate block."""

    label: str
    block: bytes


@dataclass(frozen=True)
class PemOther:
    """Anything else: encrypted keys, CSRs, public keys, or no PEM object at all."""

    label: str
    block: bytes


PemObject = Union[PemKeyPair, PemCertificateHolder, PemOther]


@dataclass(frozen=True)
class ParsedKeyPair:
    """A decoded private key and its public half."""

    private_key: PrivateKeyTypes

    @property
    def public_key(self):
        return self.private_key.public_key()

    def to_pem(self, passphrase: str | None = None) -> bytes:
        """Serialize as PKCS#8, encrypted under passphrase when one is given."""
        if passphrase:
            encryption = serialization.BestAvailableEncryption(passphrase.encode("utf-8"))
        else:
            encryption = serialization.NoEncryption()
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=encryption,
        )


@dataclass(frozen=True)
class ParsedCertificate:
    """One X.509 certificate, named by its subject."""

    certificate: x509.Certificate

    @property
    def subject_name(self) -> str:
        """RFC 4514 subject distinguished name, used as storage alias."""
        return self.certificate.subject.rfc4514_string()

    def to_pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)


def _classify(label: str, block: bytes) -> PemObject:
    if label in CERTIFICATE_LABELS:
        return PemCertificateHolder(label, block)
    # Legacy OpenSSL encryption keeps the key label but adds Proc-Type headers
    if label in KEY_PAIR_LABELS and b"Proc-Type: 4,ENCRYPTED" not in block:
        return PemKeyPair(label, block)
    if label in KEY_PAIR_LABELS:
        return PemOther(f"encrypted {label}", block)
    return PemOther(label, block)


def iter_pem_objects(data: bytes) -> Iterator[PemObject]:
    """Yield every PEM object in data, skipping text between blocks."""
    for match in _PEM_BLOCK.finditer(data):
        yield _classify(match.group(1).decode("ascii"), match.group(0))


def read_pem_object(data: bytes) -> PemObject:
    """Read the first PEM object of a stream."""
    for obj in iter_pem_objects(data):
        return obj
    return PemOther("no PEM object", data)


def decode_key_pair(data: bytes) -> ParsedKeyPair:
    """
    Decode the private key from a key stream.

    Args:
        data: Bytes holding one PEM object

    Returns:
        ParsedKeyPair with the private key loaded by cryptography

    Raises:
        MalformedInput: certificate-in-key-slot when the object is a
            certificate, unsupported-pem-object for any other non-key object
    """
    obj = read_pem_object(data)

    if isinstance(obj, PemCertificateHolder):
        raise MalformedInput(
            MalformedReason.CERTIFICATE_IN_KEY_SLOT,
            "failed to parse the private key, it looks like you might be "
            "specifying the client certificate instead of the private key",
        )
    if isinstance(obj, PemOther):
        raise MalformedInput(
            MalformedReason.UNSUPPORTED_PEM_OBJECT,
            f"failed to parse the private key: {obj.label} is not a PEM key-pair",
        )
    if not isinstance(obj, PemKeyPair):
        raise TypeError(f"unexpected PEM object {obj!r}")

    try:
        private_key = serialization.load_pem_private_key(obj.block, password=None)
    except (ValueError, TypeError) as e:
        raise MalformedInput(
            MalformedReason.UNSUPPORTED_PEM_OBJECT,
            f"failed to parse the private key: {obj.label} could not be decoded: {e}",
        ) from e
    except UnsupportedAlgorithm as e:
        raise MalformedInput(
            MalformedReason.UNSUPPORTED_PEM_OBJECT,
            f"failed to parse the private key: {e}",
        ) from e

    if not isinstance(private_key, TLS_PRIVATE_KEY_TYPES):
        raise MalformedInput(
            MalformedReason.UNSUPPORTED_PEM_OBJECT,
            f"failed to parse the private key: {type(private_key).__name__} "
            "cannot authenticate a TLS client",
        )

    logger.debug("[KUBE-TLS] Decoded %s", obj.label)
    return ParsedKeyPair(private_key)


def load_certificate(data: bytes) -> ParsedCertificate:
    """
    Decode a single certificate, PEM or DER.

    Raises:
        MalformedInput: invalid-certificate-bytes if data is not a certificate
    """
    try:
        if PEM_MARKER in data:
            cert = x509.load_pem_x509_certificate(data)
        else:
            cert = x509.load_der_x509_certificate(data)
    except ValueError as e:
        raise MalformedInput(
            MalformedReason.INVALID_CERTIFICATE_BYTES,
            f"not a valid X.509 certificate: {e}",
        ) from e
    return ParsedCertificate(cert)


def load_certificates(data: bytes) -> list[ParsedCertificate]:
    """
    Decode a certificate bundle.

    A bundle is any number of concatenated PEM certificates, or a single DER
    certificate. Empty input yields an empty list.

    Raises:
        MalformedInput: invalid-certificate-bytes if any object in the bundle
            is not a certificate
    """
    if not data.strip():
        return []
    if PEM_MARKER not in data:
        return [load_certificate(data)]

    # x509.load_pem_x509_certificates skips non-certificate blocks silently;
    # a key or CSR inside a CA bundle must be rejected instead
    certificates = []
    for obj in iter_pem_objects(data):
        if not isinstance(obj, PemCertificateHolder):
            raise MalformedInput(
                MalformedReason.INVALID_CERTIFICATE_BYTES,
                f"certificate bundle contains a {obj.label} block",
            )
        certificates.append(load_certificate(obj.block))

    if not certificates:
        raise MalformedInput(
            MalformedReason.INVALID_CERTIFICATE_BYTES,
            "certificate bundle contains no complete PEM block",
        )
    return certificates
