"""
Mutual-TLS client context construction.

Resolves the client identity and the trust anchors from a cluster
configuration, assembles them into fresh key and trust stores, and turns
those into an ssl.SSLContext for outbound connections to the control plane.
"""
import asyncio
import logging
import ssl
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from .defaults import get_default_keystore, get_default_truststore
from .errors import (
    CryptoProviderFailure,
    InvalidConfiguration,
    IOFailure,
    MalformedInput,
    MalformedReason,
)
from .keystore import IdentityEntry, KeyStore
from .pem import decode_key_pair, load_certificates
from .settings import ClientIdentityInput, KubeTLSConfig, TrustInput
from .sources import resolve_bytes


logger = logging.getLogger(__name__)


@dataclass
class TLSMaterial:
    """Assembled stores for one context build."""

    keystore: KeyStore
    truststore: KeyStore
    # Identity presented to the server, None for anonymous clients
    identity: Optional[IdentityEntry] = None


def coerce_config(config: Any) -> KubeTLSConfig:
    """Accept a KubeTLSConfig, a mapping, or any object with the same attributes."""
    if isinstance(config, KubeTLSConfig):
        return config
    try:
        if isinstance(config, dict):
            return KubeTLSConfig.model_validate(config)
        return KubeTLSConfig.model_validate(config, from_attributes=True)
    except ValidationError as e:
        raise InvalidConfiguration(str(e)) from e


def resolve_client_identity(
    identity: ClientIdentityInput,
    keystore: KeyStore,
) -> Optional[IdentityEntry]:
    """
    Add the configured client identity to keystore.

    Key and certificate are each taken from inline data when present,
    else from their file. If either one is not configured at all, no
    identity is added.

    Returns:
        The added IdentityEntry, or None when client auth is not configured
    """
    has_key = identity.key_data is not None or identity.key_file is not None
    has_cert = identity.cert_data is not None or identity.cert_file is not None

    if not has_key and not has_cert:
        logger.debug("[KUBE-TLS] No client certificate configured")
        return None
    if not (has_key and has_cert):
        # TODO: decide whether a half-configured identity should be an error
        logger.warning(
            "[KUBE-TLS] Client %s configured without a client %s, skipping client authentication",
            "key" if has_key else "certificate",
            "certificate" if has_key else "key",
        )
        return None

    key_bytes = resolve_bytes(identity.key_data, identity.key_file, "client key")
    key_pair = decode_key_pair(key_bytes)

    cert_bytes = resolve_bytes(identity.cert_data, identity.cert_file, "client certificate")
    chain = load_certificates(cert_bytes)
    if not chain:
        raise MalformedInput(
            MalformedReason.INVALID_CERTIFICATE_BYTES,
            "client certificate input is empty",
        )

    entry = keystore.add_identity(key_pair, identity.key_pass, chain)
    logger.info("[KUBE-TLS] Using client certificate %s", entry.alias)
    return entry


def resolve_trust(trust: TrustInput) -> Optional[KeyStore]:
    """
    Build a truststore from the configured CA certificates.

    Returns:
        A KeyStore holding one entry per certificate in the CA bundle, or
        None when no CA is configured and the default truststore applies
    """
    ca_bytes = resolve_bytes(trust.ca_cert_data, trust.ca_cert_file, "CA certificate")
    if ca_bytes is None:
        return None

    truststore = KeyStore(name="truststore")
    count = truststore.add_trusted_bundle(load_certificates(ca_bytes))
    logger.info("[KUBE-TLS] Trusting %d configured CA certificate(s)", count)
    return truststore


def build_tls_material(config: Any) -> TLSMaterial:
    """
    Assemble the key and trust stores for a configuration.

    The stores are fresh copies; the memoized defaults are never modified.
    """
    config = coerce_config(config)

    keystore = get_default_keystore().copy("keystore")
    identity = resolve_client_identity(config.client_identity, keystore)
    if identity is None:
        defaults = keystore.identities()
        identity = defaults[0] if defaults else None

    truststore = resolve_trust(config.trust)
    if truststore is None:
        logger.debug("[KUBE-TLS] No CA configured, using default truststore")
        truststore = get_default_truststore().copy("truststore")

    return TLSMaterial(keystore=keystore, truststore=truststore, identity=identity)


def _load_identity(context: ssl.SSLContext, identity: IdentityEntry) -> None:
    # load_cert_chain only reads files, so the material goes through a
    # private temporary directory that is removed on every exit path
    try:
        with tempfile.TemporaryDirectory(prefix="kubetls-") as tmp:
            cert_path = Path(tmp) / "client.crt"
            key_path = Path(tmp) / "client.key"
            cert_path.write_bytes(b"".join(c.to_pem() for c in identity.chain))
            key_path.write_bytes(identity.key_pair.to_pem(identity.passphrase))
            key_path.chmod(0o600)
            try:
                context.load_cert_chain(
                    certfile=str(cert_path),
                    keyfile=str(key_path),
                    password=identity.passphrase or None,
                )
            except ssl.SSLError as e:
                raise CryptoProviderFailure(
                    f"client key and certificate rejected: {e}", identity.alias
                ) from e
    except OSError as e:
        raise IOFailure(tempfile.gettempdir(), f"cannot stage client identity: {e}") from e


def create_ssl_context(material: TLSMaterial) -> ssl.SSLContext:
    """
    Turn assembled stores into a TLS client context.

    Hostname checking and peer verification are on. Without an identity the
    context offers no client certificate. Randomness comes from OpenSSL's
    CSPRNG.
    """
    try:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    except ssl.SSLError as e:
        raise CryptoProviderFailure(f"cannot create TLS context: {e}") from e

    anchors = material.truststore.trusted_certificates()
    if anchors:
        cadata = "".join(e.certificate.to_pem().decode("ascii") for e in anchors)
        try:
            context.load_verify_locations(cadata=cadata)
        except (ssl.SSLError, ValueError) as e:
            raise CryptoProviderFailure(f"trust anchors rejected: {e}", material.truststore.name) from e
    else:
        logger.warning("[KUBE-TLS] Truststore is empty, no server certificate will verify")

    if material.identity is not None:
        _load_identity(context, material.identity)

    return context


def build_ssl_context(config: Any) -> ssl.SSLContext:
    """
    Build a mutual-TLS client context from a cluster configuration.

    This reads files and does CPU-bound crypto work; call it from a worker
    thread (see build_ssl_context_async) when on an event loop.

    Raises:
        InvalidConfiguration: config fields have the wrong types
        MalformedInput: key or certificate material is wrong or unsupported
        IOFailure: a configured or default file cannot be read
        CryptoProviderFailure: the TLS layer rejects the material
    """
    material = build_tls_material(config)
    context = create_ssl_context(material)
    logger.debug(
        "[KUBE-TLS] Built TLS context: client certificate=%s, trust anchors=%d",
        material.identity.alias if material.identity else None,
        len(material.truststore.trusted_certificates()),
    )
    return context


async def build_ssl_context_async(config: Any) -> ssl.SSLContext:
    """Build the context on the default executor so the event loop is not blocked."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, build_ssl_context, config)
