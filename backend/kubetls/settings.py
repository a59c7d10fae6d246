"""
Configuration inputs for TLS context construction.

The cluster configuration is loaded elsewhere; this module only models the
optional certificate/key fields it hands over, plus the process-wide
overrides consulted when resolving the default key and trust stores.
"""
import logging
import os
from typing import Any, Mapping, Optional

from pydantic import BaseModel, field_validator


logger = logging.getLogger(__name__)

# Environment overrides for the default stores
KEYSTORE_ENV = "KUBE_TLS_KEYSTORE"
KEYSTORE_PASSWORD_ENV = "KUBE_TLS_KEYSTORE_PASSWORD"
TRUSTSTORE_ENV = "KUBE_TLS_TRUSTSTORE"
TRUSTSTORE_PASSWORD_ENV = "KUBE_TLS_TRUSTSTORE_PASSWORD"

# Legacy placeholder password of platform trust stores, not a secret
DEFAULT_TRUSTSTORE_PASSWORD = "changeit"


def _blank_to_none(v: Any) -> Any:
    # Paths arrive as str or os.PathLike; anything else is left to pydantic
    if isinstance(v, os.PathLike):
        v = os.fspath(v)
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class ClientIdentityInput(BaseModel):
    """Client certificate and key, each given inline (base64) or as a file."""

    cert_data: Optional[str] = None
    cert_file: Optional[str] = None
    key_data: Optional[str] = None
    key_file: Optional[str] = None
    key_pass: Optional[str] = None

    @field_validator("cert_data", "cert_file", "key_data", "key_file", mode="before")
    @classmethod
    def strip_blank(cls, v: Any) -> Any:
        """Accept filesystem paths and treat empty strings as absent."""
        return _blank_to_none(v)


class TrustInput(BaseModel):
    """CA certificates, given inline (base64 of a PEM bundle) or as a file."""

    ca_cert_data: Optional[str] = None
    ca_cert_file: Optional[str] = None

    @field_validator("ca_cert_data", "ca_cert_file", mode="before")
    @classmethod
    def strip_blank(cls, v: Any) -> Any:
        """Accept filesystem paths and treat empty strings as absent."""
        return _blank_to_none(v)


class KubeTLSConfig(BaseModel):
    """Certificate-related fields of a cluster configuration."""

    client_cert_data: Optional[str] = None
    client_cert_file: Optional[str] = None
    client_key_data: Optional[str] = None
    client_key_file: Optional[str] = None
    client_key_pass: Optional[str] = None
    ca_cert_data: Optional[str] = None
    ca_cert_file: Optional[str] = None

    @field_validator(
        "client_cert_data", "client_cert_file", "client_key_data", "client_key_file",
        "ca_cert_data", "ca_cert_file",
        mode="before",
    )
    @classmethod
    def strip_blank(cls, v: Any) -> Any:
        """Accept filesystem paths and treat empty strings as absent."""
        return _blank_to_none(v)

    @property
    def client_identity(self) -> ClientIdentityInput:
        return ClientIdentityInput(
            cert_data=self.client_cert_data,
            cert_file=self.client_cert_file,
            key_data=self.client_key_data,
            key_file=self.client_key_file,
            key_pass=self.client_key_pass,
        )

    @property
    def trust(self) -> TrustInput:
        return TrustInput(
            ca_cert_data=self.ca_cert_data,
            ca_cert_file=self.ca_cert_file,
        )


class DefaultStoreSettings(BaseModel):
    """Process-wide locations and passwords of the default stores."""

    keystore_file: Optional[str] = None
    keystore_password: str = ""
    truststore_file: Optional[str] = None
    truststore_password: str = DEFAULT_TRUSTSTORE_PASSWORD

    @field_validator("keystore_file", "truststore_file", mode="before")
    @classmethod
    def strip_blank(cls, v: Any) -> Any:
        """An empty path means no override."""
        return _blank_to_none(v)


def load_default_store_settings(
    environ: Optional[Mapping[str, str]] = None,
) -> DefaultStoreSettings:
    """
    Read default store overrides from the environment.

    Args:
        environ: Mapping to read instead of os.environ

    Returns:
        DefaultStoreSettings with unset values at their defaults
    """
    env = os.environ if environ is None else environ
    settings = DefaultStoreSettings(
        keystore_file=env.get(KEYSTORE_ENV),
        keystore_password=env.get(KEYSTORE_PASSWORD_ENV, ""),
        truststore_file=env.get(TRUSTSTORE_ENV),
        truststore_password=env.get(TRUSTSTORE_PASSWORD_ENV, DEFAULT_TRUSTSTORE_PASSWORD),
    )
    logger.debug(
        "[KUBE-TLS-SETTINGS] Default store overrides: keystore=%s, truststore=%s",
        settings.keystore_file, settings.truststore_file,
    )
    return settings
