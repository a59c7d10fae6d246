"""
Shared fixtures: throwaway CAs, leaf certificates and keys, and isolation of
the process-wide default stores.

Run: python -m pytest -q  (from the repository root)
"""
import base64
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from kubetls import reset_default_stores
from kubetls.settings import (
    KEYSTORE_ENV,
    KEYSTORE_PASSWORD_ENV,
    TRUSTSTORE_ENV,
    TRUSTSTORE_PASSWORD_ENV,
)


@dataclass
class Issued:
    """A certificate and the key it certifies."""

    key: object
    cert: x509.Certificate

    @property
    def cert_pem(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.PEM)

    @property
    def cert_der(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.DER)

    def key_pem(self, fmt=serialization.PrivateFormat.PKCS8, password: Optional[bytes] = None) -> bytes:
        encryption = (
            serialization.BestAvailableEncryption(password)
            if password
            else serialization.NoEncryption()
        )
        return self.key.private_bytes(serialization.Encoding.PEM, fmt, encryption)

    @property
    def subject(self) -> str:
        return self.cert.subject.rfc4514_string()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _name(cn: str) -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "kubetls tests"),
        x509.NameAttribute(NameOID.COMMON_NAME, cn),
    ])


def make_ca(cn: str = "Test CA", key=None) -> Issued:
    """Create a self-signed CA."""
    key = key or ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(_name(cn))
        .issuer_name(_name(cn))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(key, hashes.SHA256())
    )
    return Issued(key, cert)


def make_leaf(ca: Issued, cn: str, server: bool = False, key=None) -> Issued:
    """Create a leaf certificate signed by ca."""
    key = key or ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(_name(cn))
        .issuer_name(ca.cert.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca.key.public_key()),
            critical=False,
        )
    )
    if server:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName("localhost")]), critical=False
        ).add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
    else:
        builder = builder.add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CLIENT_AUTH]), critical=False
        )
    return Issued(key, builder.sign(ca.key, hashes.SHA256()))


@pytest.fixture(scope="session")
def ca() -> Issued:
    return make_ca("Test CA")


@pytest.fixture(scope="session")
def client(ca) -> Issued:
    return make_leaf(ca, "kube-admin")


@pytest.fixture(scope="session")
def server(ca) -> Issued:
    return make_leaf(ca, "kube-apiserver", server=True)


@pytest.fixture(scope="session")
def rsa_client(ca) -> Issued:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return make_leaf(ca, "rsa-admin", key=key)


@pytest.fixture(autouse=True)
def isolated_default_stores(monkeypatch):
    """Each test starts with no store overrides and no memoized defaults."""
    for var in (KEYSTORE_ENV, KEYSTORE_PASSWORD_ENV, TRUSTSTORE_ENV, TRUSTSTORE_PASSWORD_ENV):
        monkeypatch.delenv(var, raising=False)
    reset_default_stores()
    yield
    reset_default_stores()
