"""Local custody backend.

Uses in-memory private keys for signing. Suitable for:
- Development/testing
- Exercising the remote signing flow without a custody service

WARNING: Private keys are stored in memory. Use KMS for anything else.
"""

import logging
from typing import Optional

from eth_keys import keys

from remote_signer.signing.base import (
    CustodyBackend,
    CustodyType,
    KeyNotFoundError,
    RawSignature,
)

logger = logging.getLogger(__name__)


class LocalCustody(CustodyBackend):
    """Custody backend holding private keys in memory.

    Behaves like a remote custody service: it signs digests and hands out
    (r, s) only, dropping the recovery parameter.
    """

    def __init__(self, private_key: Optional[str] = None):
        """Initialize local custody.

        Args:
            private_key: Optional hex key registered under the "default" key id
        """
        super().__init__(CustodyType.LOCAL)
        self._keys: dict[str, keys.PrivateKey] = {}
        if private_key:
            self.add_key("default", private_key)
            logger.info("Loaded default local custody key")

    def _get_key(self, key_id: str) -> keys.PrivateKey:
        """Get private key for signing.

        Raises:
            KeyNotFoundError: If key not found
        """
        key = self._keys.get(key_id.upper())
        if key is None:
            raise KeyNotFoundError(f"No signing key found for {key_id}")
        return key

    async def get_public_key(self, key_id: str) -> bytes:
        """Get public key from private key."""
        return self._get_key(key_id).public_key.to_bytes()

    async def request_raw_signature(self, digest: bytes, key_id: str) -> RawSignature:
        """Sign a digest and return (r, s) without v."""
        if len(digest) != 32:
            raise ValueError(f"Digest must be 32 bytes, got {len(digest)}")

        signature = self._get_key(key_id).sign_msg_hash(bytes(digest))
        return RawSignature(r=signature.r, s=signature.s)

    async def health_check(self) -> bool:
        """Check if any keys are loaded."""
        return len(self._keys) > 0

    def add_key(self, key_id: str, private_key_hex: str):
        """Add a private key dynamically (for testing).

        Args:
            key_id: Key identifier
            private_key_hex: Private key as hex string
        """
        self._keys[key_id.upper()] = keys.PrivateKey(bytes.fromhex(private_key_hex.replace("0x", "")))

    def remove_key(self, key_id: str):
        """Remove a private key."""
        self._keys.pop(key_id.upper(), None)
