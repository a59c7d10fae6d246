"""
In-memory key and trust stores.

A KeyStore is a plain alias-keyed collection. It is assembled once per TLS
context; adding an alias that already exists replaces the earlier entry.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from .pem import ParsedCertificate, ParsedKeyPair


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityEntry:
    """Private key, its passphrase and certificate chain (leaf first)."""

    alias: str
    key_pair: ParsedKeyPair
    passphrase: Optional[str]
    chain: tuple[ParsedCertificate, ...]

    @property
    def certificate(self) -> ParsedCertificate:
        return self.chain[0]


@dataclass(frozen=True)
class TrustedCertificateEntry:
    """A trust anchor."""

    alias: str
    certificate: ParsedCertificate


KeyStoreEntry = Union[IdentityEntry, TrustedCertificateEntry]


@dataclass
class KeyStore:
    """Alias-keyed collection of identity and trust entries."""

    name: str = "keystore"
    _entries: dict[str, KeyStoreEntry] = field(default_factory=dict, repr=False)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, alias: object) -> bool:
        return alias in self._entries

    def __iter__(self) -> Iterator[KeyStoreEntry]:
        return iter(self._entries.values())

    def aliases(self) -> list[str]:
        return list(self._entries)

    def get(self, alias: str) -> Optional[KeyStoreEntry]:
        return self._entries.get(alias)

    def _put(self, entry: KeyStoreEntry) -> None:
        if entry.alias in self._entries:
            logger.debug("[KUBE-TLS-STORE] %s: replacing entry %s", self.name, entry.alias)
        self._entries[entry.alias] = entry

    def add_identity(
        self,
        key_pair: ParsedKeyPair,
        passphrase: Optional[str],
        chain: list[ParsedCertificate],
    ) -> IdentityEntry:
        """
        Add a client identity keyed by the leaf certificate's subject name.

        Args:
            key_pair: Decoded private key
            passphrase: Passphrase protecting the entry, if any
            chain: Certificate chain, leaf first

        Returns:
            The stored IdentityEntry
        """
        if not chain:
            raise ValueError("identity entry needs at least one certificate")
        entry = IdentityEntry(
            alias=chain[0].subject_name,
            key_pair=key_pair,
            passphrase=passphrase,
            chain=tuple(chain),
        )
        self._put(entry)
        logger.debug("[KUBE-TLS-STORE] %s: added identity %s", self.name, entry.alias)
        return entry

    def add_trusted(self, certificate: ParsedCertificate, index: int) -> TrustedCertificateEntry:
        """Add a trust anchor aliased by subject name and its ordinal in the bundle."""
        entry = TrustedCertificateEntry(
            alias=f"{certificate.subject_name}-{index}",
            certificate=certificate,
        )
        self._put(entry)
        return entry

    def add_trusted_bundle(self, certificates: list[ParsedCertificate]) -> int:
        """Add every certificate of a bundle as its own trust anchor."""
        for index, certificate in enumerate(certificates):
            self.add_trusted(certificate, index)
        logger.debug(
            "[KUBE-TLS-STORE] %s: added %d trusted certificate(s)", self.name, len(certificates)
        )
        return len(certificates)

    def identities(self) -> list[IdentityEntry]:
        return [e for e in self._entries.values() if isinstance(e, IdentityEntry)]

    def trusted_certificates(self) -> list[TrustedCertificateEntry]:
        return [e for e in self._entries.values() if isinstance(e, TrustedCertificateEntry)]

    def copy(self, name: Optional[str] = None) -> "KeyStore":
        """Shallow copy; entries are immutable so they can be shared."""
        return KeyStore(name=name or self.name, _entries=dict(self._entries))
