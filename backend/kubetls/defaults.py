"""
Process-wide default key and trust stores.

Both stores are loaded lazily on first use and then reused for the life of
the process. A later change to the underlying files is not picked up until
reset_default_stores() is called.
"""
import logging
import os
import ssl
import threading
from typing import Callable, Generic, Optional, TypeVar

import certifi
from cryptography.hazmat.primitives.serialization import pkcs12

from .errors import CryptoProviderFailure, MalformedInput, MalformedReason
from .keystore import KeyStore
from .pem import PEM_MARKER, TLS_PRIVATE_KEY_TYPES, ParsedCertificate, ParsedKeyPair, load_certificates
from .settings import DefaultStoreSettings, load_default_store_settings
from .sources import read_file_bytes


logger = logging.getLogger(__name__)

T = TypeVar("T")


class LazyCell(Generic[T]):
    """
    A value computed at most once, on first access.

    Concurrent first callers block on a lock; exactly one runs the loader and
    all of them see the fully built value. A failed load leaves the cell
    empty so the next call tries again.
    """

    def __init__(self, loader: Callable[[], T]):
        self._loader = loader
        self._lock = threading.Lock()
        self._value: Optional[T] = None
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def get(self) -> T:
        if self._loaded:
            return self._value  # type: ignore[return-value]
        with self._lock:
            if not self._loaded:
                self._value = self._loader()
                self._loaded = True
            return self._value  # type: ignore[return-value]

    def reset(self) -> None:
        with self._lock:
            self._value = None
            self._loaded = False


def _load_pkcs12(data: bytes, password: str, path: str) -> pkcs12.PKCS12KeyAndCertificates:
    try:
        return pkcs12.load_pkcs12(data, password.encode("utf-8") if password else None)
    except ValueError as e:
        raise CryptoProviderFailure(f"cannot open PKCS#12 store: {e}", path) from e


def load_default_keystore(settings: DefaultStoreSettings) -> KeyStore:
    """
    Load the default keystore.

    Reads the PKCS#12 file named by the keystore override when one is set,
    otherwise starts from an empty store.
    """
    keystore = KeyStore(name="default-keystore")
    if not settings.keystore_file:
        logger.debug("[KUBE-TLS-DEFAULTS] No keystore override, using an empty keystore")
        return keystore

    path = settings.keystore_file
    logger.info("[KUBE-TLS-DEFAULTS] Loading default keystore from %s", path)
    bundle = _load_pkcs12(read_file_bytes(path, "keystore"), settings.keystore_password, path)

    if bundle.key is not None and bundle.cert is not None:
        if not isinstance(bundle.key, TLS_PRIVATE_KEY_TYPES):
            raise MalformedInput(
                MalformedReason.UNSUPPORTED_PEM_OBJECT,
                f"{path}: {type(bundle.key).__name__} cannot authenticate a TLS client",
            )
        chain = [ParsedCertificate(bundle.cert.certificate)]
        chain.extend(ParsedCertificate(c.certificate) for c in bundle.additional_certs)
        keystore.add_identity(ParsedKeyPair(bundle.key), None, chain)
    else:
        logger.warning("[KUBE-TLS-DEFAULTS] Keystore %s holds no key entry", path)
    return keystore


def default_truststore_path(settings: DefaultStoreSettings) -> str:
    """
    Pick the default truststore file.

    Order: the truststore override, then OpenSSL's default CA file when it
    exists, then the certifi bundle.
    """
    if settings.truststore_file:
        return settings.truststore_file
    cafile = ssl.get_default_verify_paths().cafile
    if cafile and os.path.isfile(cafile):
        return cafile
    return certifi.where()


def load_default_truststore(settings: DefaultStoreSettings) -> KeyStore:
    """Load the default trust anchors from a PEM bundle or a PKCS#12 store."""
    path = default_truststore_path(settings)
    logger.info("[KUBE-TLS-DEFAULTS] Loading default truststore from %s", path)
    data = read_file_bytes(path, "truststore")

    if PEM_MARKER in data:
        certificates = load_certificates(data)
    else:
        bundle = _load_pkcs12(data, settings.truststore_password, path)
        certificates = [ParsedCertificate(c.certificate) for c in bundle.additional_certs]
        if bundle.cert is not None:
            certificates.insert(0, ParsedCertificate(bundle.cert.certificate))

    truststore = KeyStore(name="default-truststore")
    truststore.add_trusted_bundle(certificates)
    logger.info("[KUBE-TLS-DEFAULTS] Loaded %d default trust anchor(s)", len(truststore))
    return truststore


_default_keystore: LazyCell[KeyStore] = LazyCell(
    lambda: load_default_keystore(load_default_store_settings())
)
_default_truststore: LazyCell[KeyStore] = LazyCell(
    lambda: load_default_truststore(load_default_store_settings())
)


def get_default_keystore() -> KeyStore:
    """Get the memoized default keystore. Callers must copy before adding entries."""
    return _default_keystore.get()


def get_default_truststore() -> KeyStore:
    """Get the memoized default truststore. Callers must copy before adding entries."""
    return _default_truststore.get()


def reset_default_stores() -> None:
    """Forget the memoized default stores (forces a reload on next use)."""
    _default_keystore.reset()
    _default_truststore.reset()
    logger.info("[KUBE-TLS-DEFAULTS] Default store cache cleared")
