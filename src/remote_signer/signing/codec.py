"""Signature codec.

Converts between the serialized Ethereum signature (r || s || v) and its
components. Pure data transformation: v is encoded and decoded as given,
never validated here.
"""

from dataclasses import dataclass
from typing import Union

from eth_utils import is_hexstr, to_bytes
from hexbytes import HexBytes

from remote_signer.signing.base import MalformedSignature

SIGNATURE_LENGTH = 65

Component = Union[int, bytes, bytearray, str]


@dataclass(frozen=True)
class Signature:
    """Recoverable signature components.

    Attributes:
        r: R component
        s: S component
        v: Recovery parameter in the convention of the caller (0/1, 27/28 or EIP-155)
    """
    r: int
    s: int
    v: int

    def to_bytes(self) -> HexBytes:
        return join_signature(self.r, self.s, self.v)

    def to_hex(self) -> str:
        return self.to_bytes().to_0x_hex()


def _to_signature_bytes(signature: Union[bytes, bytearray, str]) -> bytes:
    if isinstance(signature, str):
        if not is_hexstr(signature):
            raise MalformedSignature(f"Signature is not a hex string: {signature!r}")
        return to_bytes(hexstr=signature)
    if not isinstance(signature, (bytes, bytearray)):
        raise MalformedSignature(f"Expected bytes or a hex string, got {type(signature).__name__}")
    return bytes(signature)


def _component_to_bytes(name: str, value: Component) -> bytes:
    """Left-pad a signature component to 32 bytes."""
    if isinstance(value, int):
        if value < 0 or value >= 2**256:
            raise MalformedSignature(f"Signature component {name} out of range")
        return value.to_bytes(32, "big")

    raw = _to_signature_bytes(value)
    if len(raw) > 32:
        raise MalformedSignature(f"Signature component {name} is {len(raw)} bytes, expected at most 32")
    return raw.rjust(32, b"\x00")


def _v_to_bytes(v: int) -> bytes:
    if v < 0:
        raise MalformedSignature(f"Invalid recovery parameter: {v}")
    # Minimal big-endian encoding, a single byte for every v below 256
    return v.to_bytes(max(1, (v.bit_length() + 7) // 8), "big")


def split_signature(signature: Union[bytes, bytearray, str]) -> Signature:
    """Split a 65-byte signature into (r, s, v).

    Args:
        signature: Serialized signature as bytes or 0x-prefixed hex

    Returns:
        Signature with integer components

    Raises:
        MalformedSignature: If the input is not exactly 65 bytes
    """
    raw = _to_signature_bytes(signature)
    if len(raw) != SIGNATURE_LENGTH:
        raise MalformedSignature(
            f"Signature must be {SIGNATURE_LENGTH} bytes, got {len(raw)}"
        )

    return Signature(
        r=int.from_bytes(raw[0:32], "big"),
        s=int.from_bytes(raw[32:64], "big"),
        v=raw[64],
    )


def join_signature(r: Component, s: Component, v: int) -> HexBytes:
    """Concatenate r, s and v into a serialized signature.

    r and s are left-padded to 32 bytes. Inverse of split_signature.
    """
    return HexBytes(_component_to_bytes("r", r) + _component_to_bytes("s", s) + _v_to_bytes(v))
