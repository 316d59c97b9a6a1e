"""Base interfaces for remote-key signing.

Signing flow:
1. Compute the 32-byte digest for the signing intent
2. Submit the digest to the custody service with a key identifier
3. Custody service returns a raw (r, s) pair (the private key never leaves it)
4. Resolve the recovery id against the signer's known address
5. Assemble the 65-byte Ethereum signature
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Union

logger = logging.getLogger(__name__)


class CustodyType(str, Enum):
    """Type of custody backend."""
    LOCAL = "local"           # Private key in memory (dev/test only)
    KMS = "kms"               # AWS KMS


@dataclass(frozen=True)
class RawSignature:
    """Non-recoverable ECDSA signature returned by a custody service.

    Attributes:
        r: R component of the signature
        s: S component of the signature (may be high-s)
    """
    r: int
    s: int

    @classmethod
    def from_bytes(cls, r: Union[bytes, bytearray], s: Union[bytes, bytearray]) -> "RawSignature":
        return cls(r=int.from_bytes(r, "big"), s=int.from_bytes(s, "big"))

    def to_bytes(self) -> tuple[bytes, bytes]:
        """Return (r, s) as 32-byte big-endian values."""
        return self.r.to_bytes(32, "big"), self.s.to_bytes(32, "big")


class CustodyBackend(ABC):
    """Abstract base class for custody backends.

    Implementations must NEVER expose raw private keys and must never hash
    the digest they are given. All signing operations return (r, s) only.
    """

    def __init__(self, custody_type: CustodyType):
        self.custody_type = custody_type

    @abstractmethod
    async def get_public_key(self, key_id: str) -> bytes:
        """Get the raw public key for a key identifier.

        Args:
            key_id: Key identifier

        Returns:
            64-byte uncompressed public key (x || y, no 0x04 prefix)

        Raises:
            KeyNotFoundError: If the key is unknown to the backend
            CustodyError: If the custody service fails
        """
        pass

    @abstractmethod
    async def request_raw_signature(self, digest: bytes, key_id: str) -> RawSignature:
        """Sign a 32-byte digest.

        Args:
            digest: Digest to sign, exactly 32 bytes
            key_id: Key identifier

        Returns:
            RawSignature with r and s components

        Raises:
            KeyNotFoundError: If the key is unknown to the backend
            CustodyError: If the custody service fails
        """
        pass

    async def health_check(self) -> bool:
        """Check if the custody backend is available.

        Returns:
            True if backend is ready to sign
        """
        return True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.custody_type.value})"


class SigningError(Exception):
    """Exception raised when signing fails."""
    pass


class MalformedSignature(SigningError, ValueError):
    """Exception raised when a serialized signature or component has the wrong size."""
    pass


class RecoveryMismatch(SigningError):
    """Exception raised when no recovery id reproduces the expected address."""
    pass


class UnsupportedVersion(SigningError, ValueError):
    """Exception raised for an unrecognized typed data version."""
    pass


class VersionNotAllowed(SigningError, ValueError):
    """Exception raised when a recognized version is outside the allow-list."""
    pass


class TypedDataError(SigningError, ValueError):
    """Exception raised when typed data cannot be encoded."""
    pass


class MissingDataError(SigningError, ValueError):
    """Exception raised when a required signing payload is absent."""
    pass


class SenderMismatch(SigningError, ValueError):
    """Exception raised when a transaction names a sender other than the signer."""
    pass


class CustodyError(SigningError):
    """Exception raised when the custody service fails."""
    pass


class KeyNotFoundError(CustodyError):
    """Exception raised when signing key is not found."""
    pass
