"""Ethereum signer backed by a remote custody key.

The custody service only returns (r, s) over a digest. RemoteKeySigner
computes the digest, requests the raw signature, resolves v against the
signer's address and assembles the final Ethereum signature.

Example:
    signer = RemoteKeySigner(KMSCustody(region="eu-west-1"), "alias/treasury")
    address = await signer.get_address()
    signature = await signer.sign_message("Hello, Ethereum!")
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Optional, Union

from eth_utils import is_address, to_checksum_address
from hexbytes import HexBytes

from remote_signer.signing.base import CustodyBackend, MissingDataError, SenderMismatch
from remote_signer.signing.codec import Signature, join_signature
from remote_signer.signing.digest import (
    PlainMessage,
    Transaction,
    TypedData,
    digest_for,
    encode_signed_transaction,
    is_typed_transaction,
    transaction_chain_id,
    unsigned_transaction,
)
from remote_signer.signing.recovery import (
    address_from_public_key,
    normalize_digest,
    resolve_signature,
    to_eth_v,
)
from remote_signer.signing.typed_data import TypedDataVersion, VersionLike, validate_version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unresolved:
    """Signer address not fetched from the custody service yet."""


@dataclass(frozen=True)
class Resolved:
    """Signer address derived from the custody public key."""
    address: str


AddressState = Union[Unresolved, Resolved]


class RemoteKeySigner:
    """Produces Ethereum signatures with a key that never leaves custody.

    The address moves one way from Unresolved to Resolved on the first
    get_address or signing call. Concurrent first calls may both query the
    custody service; they converge on the same address.
    """

    def __init__(
        self,
        custody: CustodyBackend,
        key_id: str,
        allowed_versions: Optional[Iterable[VersionLike]] = None,
    ):
        """Initialize the signer.

        Args:
            custody: Custody backend holding the key
            key_id: Key identifier understood by the custody backend
            allowed_versions: Optional typed data version allow-list
        """
        self.custody = custody
        self.key_id = key_id
        self.allowed_versions = (
            [validate_version(v) for v in allowed_versions] if allowed_versions is not None else None
        )
        self._address_state: AddressState = Unresolved()

    @property
    def address_resolved(self) -> bool:
        return isinstance(self._address_state, Resolved)

    async def get_address(self) -> str:
        """Get the checksummed signer address, fetching the public key once."""
        if isinstance(self._address_state, Resolved):
            return self._address_state.address

        public_key = await self.custody.get_public_key(self.key_id)
        address = address_from_public_key(public_key)
        self._address_state = Resolved(address)
        logger.info(f"Resolved signer address {address} for key {self.key_id}")
        return address

    async def _resolve(self, digest: Union[bytes, str]) -> Signature:
        """Request (r, s) for a digest and resolve its 0/1 recovery id."""
        digest = normalize_digest(digest)
        address = await self.get_address()
        raw = await self.custody.request_raw_signature(digest, self.key_id)
        resolved = resolve_signature(digest, raw, address)
        logger.debug(f"Resolved recovery id {resolved.v} for digest 0x{bytes(digest).hex()}")
        return resolved

    async def sign_digest(self, digest: Union[bytes, str], chain_id: Optional[int] = None) -> Signature:
        """Sign a 32-byte digest and resolve the recovery parameter.

        Args:
            digest: 32-byte digest to sign, as bytes or a 0x hex string
            chain_id: Chain id for EIP-155 v; None gives v = 27/28

        Returns:
            Signature with canonical low-s

        Raises:
            RecoveryMismatch: If the custody signature does not match the signer address
        """
        resolved = await self._resolve(digest)
        return Signature(r=resolved.r, s=resolved.s, v=to_eth_v(resolved.v, chain_id))

    async def _sign_intent(self, intent) -> HexBytes:
        digest = digest_for(intent, self.allowed_versions)
        signature = await self.sign_digest(digest)
        return join_signature(signature.r, signature.s, signature.v)

    async def sign_message(self, message: Union[str, bytes]) -> HexBytes:
        """Sign a personal message (text is UTF-8 encoded).

        Returns:
            65-byte signature with v = 27/28
        """
        if message is None:
            raise MissingDataError("Missing message parameter")
        return await self._sign_intent(PlainMessage(message))

    async def sign_typed_data(self, data: Any, version: VersionLike = TypedDataVersion.V4) -> HexBytes:
        """Sign typed data according to EIP-712. The hashing differs based on version.

        V1 is based on an early draft of EIP-712 and should generally be
        avoided in favor of later versions. V3 does not support arrays or
        recursive data structures. V4 supports both.

        Args:
            data: Typed data (a list of typed values for V1, an EIP-712 message otherwise)
            version: Signing version

        Returns:
            65-byte signature with v = 27/28
        """
        version = validate_version(version, self.allowed_versions)
        if data is None:
            raise MissingDataError("Missing data parameter")
        return await self._sign_intent(TypedData(data, version))

    async def sign_transaction(self, transaction: dict) -> HexBytes:
        """Sign a transaction and return the serialized signed transaction.

        Legacy transactions with chainId are signed per EIP-155, typed
        transactions carry the y-parity as v. A "from" field must name the
        signer and is dropped before serialization.

        Raises:
            SenderMismatch: If "from" is not the signer address
        """
        if not transaction:
            raise MissingDataError("Missing transaction parameter")

        if "from" in transaction:
            address = await self.get_address()
            sender = transaction["from"]
            if not is_address(sender) or to_checksum_address(sender) != address:
                raise SenderMismatch(f"from field must match signer address {address}, but it was {sender}")
            transaction = {k: v for k, v in transaction.items() if k != "from"}

        unsigned = unsigned_transaction(transaction)
        digest = digest_for(Transaction(transaction))
        resolved = await self._resolve(digest)

        if is_typed_transaction(unsigned):
            v = resolved.v
        else:
            v = to_eth_v(resolved.v, transaction_chain_id(unsigned))

        return HexBytes(encode_signed_transaction(unsigned, v, resolved.r, resolved.s))

    def connect(self, custody: CustodyBackend) -> "RemoteKeySigner":
        """Return a signer for the same key on another custody client."""
        return RemoteKeySigner(custody, self.key_id, allowed_versions=self.allowed_versions)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(custody={self.custody!r}, key_id={self.key_id!r})"
