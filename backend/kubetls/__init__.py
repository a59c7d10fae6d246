"""
Mutual-TLS client contexts for cluster control plane connections.

Provides:
- Client certificate and key from inline base64 data or files
- CA trust from inline data, a file, or the platform default truststore
- Process-wide default key/trust stores, loaded once
- ssl.SSLContext and httpx client construction
"""

from .client import create_http_client, open_http_client
from .context import (
    TLSMaterial,
    build_ssl_context,
    build_ssl_context_async,
    build_tls_material,
    create_ssl_context,
)
from .defaults import get_default_keystore, get_default_truststore, reset_default_stores
from .errors import (
    CryptoProviderFailure,
    InvalidConfiguration,
    IOFailure,
    KubeTLSError,
    MalformedInput,
    MalformedReason,
)
from .keystore import IdentityEntry, KeyStore, TrustedCertificateEntry
from .settings import (
    ClientIdentityInput,
    DefaultStoreSettings,
    KubeTLSConfig,
    TrustInput,
    load_default_store_settings,
)

__all__ = [
    "create_http_client",
    "open_http_client",
    "TLSMaterial",
    "build_ssl_context",
    "build_ssl_context_async",
    "build_tls_material",
    "create_ssl_context",
    "get_default_keystore",
    "get_default_truststore",
    "reset_default_stores",
    "CryptoProviderFailure",
    "InvalidConfiguration",
    "IOFailure",
    "KubeTLSError",
    "MalformedInput",
    "MalformedReason",
    "IdentityEntry",
    "KeyStore",
    "TrustedCertificateEntry",
    "ClientIdentityInput",
    "DefaultStoreSettings",
    "KubeTLSConfig",
    "TrustInput",
    "load_default_store_settings",
]
