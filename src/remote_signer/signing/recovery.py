"""Recovery id resolution.

A custody service returns (r, s) without the recovery parameter. Ethereum
needs v, so we try both candidate recovery ids and keep the one whose
recovered public key derives the signer's known address.

For EIP-155, v = chain_id * 2 + 35 + recovery_id
For legacy, v = 27 + recovery_id
For typed transactions, v = recovery_id (y-parity)
"""

import logging
from typing import Optional, Union

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_utils import is_hexstr, to_bytes, to_canonical_address, to_checksum_address

from remote_signer.signing.base import MissingDataError, RawSignature, RecoveryMismatch
from remote_signer.signing.codec import Signature, split_signature
from remote_signer.signing.digest import typed_data_hash
from remote_signer.signing.typed_data import VersionLike

logger = logging.getLogger(__name__)

# secp256k1 curve order
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2

V_OFFSET = 27
CHAIN_ID_OFFSET = 35


def normalize_digest(digest: Union[bytes, str]) -> bytes:
    """Return a 32-byte digest given as bytes or a 0x hex string."""
    if isinstance(digest, str):
        if not is_hexstr(digest):
            raise ValueError(f"Digest is not a hex string: {digest!r}")
        digest = to_bytes(hexstr=digest)
    elif not isinstance(digest, (bytes, bytearray)):
        raise TypeError(f"Digest must be bytes or a hex string, got {type(digest).__name__}")
    if len(digest) != 32:
        raise ValueError(f"Digest must be 32 bytes, got {len(digest)}")
    return bytes(digest)


def canonicalize(raw: RawSignature) -> tuple[RawSignature, bool]:
    """Normalize s to the low half of the curve order (EIP-2).

    Returns:
        Tuple of (canonical signature, whether s was flipped)
    """
    if raw.s > SECP256K1_HALF_N:
        return RawSignature(r=raw.r, s=SECP256K1_N - raw.s), True
    return raw, False


def to_eth_v(recovery_id: int, chain_id: Optional[int] = None) -> int:
    """Convert a 0/1 recovery id to Ethereum's v convention."""
    if chain_id is None:
        return recovery_id + V_OFFSET
    return recovery_id + CHAIN_ID_OFFSET + 2 * chain_id


def to_recovery_id(v: int) -> int:
    """Convert any Ethereum v convention back to a 0/1 recovery id."""
    if v in (0, 1):
        return v
    if v in (27, 28):
        return v - V_OFFSET
    if v >= CHAIN_ID_OFFSET:
        return (v - CHAIN_ID_OFFSET) % 2
    raise ValueError(f"Invalid recovery parameter: {v}")


def address_from_public_key(public_key: Union[bytes, keys.PublicKey]) -> str:
    """Derive a checksummed address from a raw public key.

    Ethereum address: last 20 bytes of keccak256(x || y).
    Accepts 64-byte raw keys or 65-byte keys with the 0x04 prefix.
    """
    if isinstance(public_key, keys.PublicKey):
        return public_key.to_checksum_address()

    raw = bytes(public_key)
    if len(raw) == 65 and raw[0] == 0x04:
        raw = raw[1:]
    return keys.PublicKey(raw).to_checksum_address()


def _recover_candidate(digest: bytes, raw: RawSignature, recovery_id: int) -> Optional[bytes]:
    try:
        sig = keys.Signature(vrs=(recovery_id, raw.r, raw.s))
        return sig.recover_public_key_from_msg_hash(digest).to_canonical_address()
    except (BadSignature, ValidationError) as e:
        logger.debug(f"Recovery candidate {recovery_id} rejected: {e}")
        return None


def resolve_signature(digest: Union[bytes, str], raw: RawSignature, expected_address: str) -> Signature:
    """Resolve the recovery id of a raw signature.

    Args:
        digest: The 32-byte digest that was signed
        raw: Raw (r, s) returned by the custody service
        expected_address: Address of the signing key (any case)

    Returns:
        Signature with canonical low-s and v as a 0/1 recovery id

    Raises:
        RecoveryMismatch: If neither candidate recovers expected_address
    """
    digest = normalize_digest(digest)
    expected = to_canonical_address(expected_address)
    canonical, flipped = canonicalize(raw)
    if flipped:
        logger.debug("Normalized high-s signature from custody service")

    for recovery_id in (0, 1):
        if _recover_candidate(digest, canonical, recovery_id) == expected:
            return Signature(r=canonical.r, s=canonical.s, v=recovery_id)

    raise RecoveryMismatch(
        f"Signature does not recover to {to_checksum_address(expected)}: "
        "wrong digest, corrupted signature or wrong signer address"
    )


def resolve_recovery_id(digest: Union[bytes, str], raw: RawSignature, expected_address: str) -> int:
    """Return only the 0/1 recovery id for (digest, r, s)."""
    return resolve_signature(digest, raw, expected_address).v


def recover_public_key(digest: Union[bytes, str], signature: Union[bytes, str, Signature]) -> bytes:
    """Recover the 64-byte public key from a digest and a recoverable signature."""
    if not isinstance(signature, Signature):
        signature = split_signature(signature)
    sig = keys.Signature(vrs=(to_recovery_id(signature.v), signature.r, signature.s))
    return sig.recover_public_key_from_msg_hash(normalize_digest(digest)).to_bytes()


def recover_address(digest: Union[bytes, str], signature: Union[bytes, str, Signature]) -> str:
    """Recover the checksummed signer address from a digest and a signature."""
    return address_from_public_key(recover_public_key(digest, signature))


def recover_typed_signature(data, signature: Union[bytes, str], version: VersionLike) -> str:
    """Recover the address that signed typed data.

    The version must match the one used to create the signature.
    """
    if signature is None:
        raise MissingDataError("Missing signature parameter")
    return recover_address(typed_data_hash(data, version), signature)
