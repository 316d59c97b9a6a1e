"""Digest computation for each signing intent.

Every signature this package produces is over a 32-byte digest computed
here. Custody services never hash anything themselves.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from eth_account._utils.legacy_transactions import (
    Transaction as ChainAwareTransaction,
    encode_transaction,
    serializable_unsigned_transaction_from_dict,
)
from eth_account.messages import SignableMessage, encode_defunct
from eth_account.typed_transactions import TypedTransaction
from eth_utils import keccak

from remote_signer.signing.base import MissingDataError
from remote_signer.signing.typed_data import (
    TypedDataVersion,
    VersionLike,
    eip712_hash,
    typed_signature_hash,
    validate_version,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlainMessage:
    """Personal message (EIP-191 version 0x45)."""
    message: Union[bytes, str]


@dataclass(frozen=True)
class TypedData:
    """eth_signTypedData payload with its version tag."""
    data: Any
    version: VersionLike = TypedDataVersion.V4


@dataclass(frozen=True)
class Transaction:
    """Unsigned transaction fields, as accepted by eth_account."""
    fields: dict = field(default_factory=dict)


SigningIntent = Union[PlainMessage, TypedData, Transaction]


def hash_signable_message(signable: SignableMessage) -> bytes:
    """Hash an EIP-191 signable message: keccak(0x19 || version || header || body)."""
    return keccak(b"\x19" + signable.version + signable.header + signable.body)


def hash_personal_message(message: Union[bytes, str]) -> bytes:
    """Hash with the "\\x19Ethereum Signed Message:\\n<len>" prefix.

    Text is UTF-8 encoded, bytes are used as given.
    """
    if isinstance(message, str):
        return hash_signable_message(encode_defunct(text=message))
    return hash_signable_message(encode_defunct(primitive=bytes(message)))


def typed_data_hash(
    data: Any,
    version: VersionLike,
    allowed_versions: Optional[Iterable[VersionLike]] = None,
) -> bytes:
    """Hash typed data according to its version.

    The version is validated before any hashing is attempted.
    """
    version = validate_version(version, allowed_versions)
    if data is None:
        raise MissingDataError("Missing data parameter")

    if version is TypedDataVersion.V1:
        return typed_signature_hash(data)
    return eip712_hash(data, version)


def unsigned_transaction(fields: dict):
    """Build the RLP-serializable unsigned transaction.

    Legacy transactions with a chainId come back as an EIP-155 transaction
    (v = chainId, r = s = 0), typed transactions as a TypedTransaction.
    """
    if not fields:
        raise MissingDataError("Missing transaction parameter")
    return serializable_unsigned_transaction_from_dict(dict(fields))


def transaction_chain_id(unsigned) -> Optional[int]:
    """Chain id that must be folded into v, or None when v is not chain-offset."""
    if isinstance(unsigned, ChainAwareTransaction):
        return unsigned.v
    return None


def is_typed_transaction(unsigned) -> bool:
    return isinstance(unsigned, TypedTransaction)


def encode_signed_transaction(unsigned, v: int, r: int, s: int) -> bytes:
    """Serialize the transaction with its signature attached."""
    return encode_transaction(unsigned, vrs=(v, r, s))


def transaction_hash(fields: dict) -> bytes:
    """Hash of the serialized unsigned transaction."""
    return bytes(unsigned_transaction(fields).hash())


def digest_for(
    intent: SigningIntent,
    allowed_versions: Optional[Iterable[VersionLike]] = None,
) -> bytes:
    """Compute the 32-byte digest to sign for a signing intent.

    Args:
        intent: PlainMessage, TypedData or Transaction
        allowed_versions: Optional allow-list applied to typed data versions

    Returns:
        32-byte digest
    """
    if isinstance(intent, PlainMessage):
        digest = hash_personal_message(intent.message)
    elif isinstance(intent, TypedData):
        digest = typed_data_hash(intent.data, intent.version, allowed_versions)
    elif isinstance(intent, Transaction):
        digest = transaction_hash(intent.fields)
    else:
        raise TypeError(f"Unknown signing intent: {type(intent).__name__}")

    logger.debug(f"{type(intent).__name__} digest: 0x{digest.hex()}")
    return digest
