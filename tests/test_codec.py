"""Tests for the signature codec."""

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys import keys
from eth_utils import keccak

from remote_signer.signing.base import MalformedSignature
from remote_signer.signing.codec import Signature, join_signature, split_signature

from tests.conftest import TEST_PRIVATE_KEY


class TestSplitSignature:
    """Tests for split_signature."""

    def test_split_components(self):
        """Test that bytes are sliced as r || s || v."""
        raw = bytes([1] * 32) + bytes([2] * 32) + bytes([28])
        sig = split_signature(raw)

        assert sig.r == int.from_bytes(bytes([1] * 32), "big")
        assert sig.s == int.from_bytes(bytes([2] * 32), "big")
        assert sig.v == 28

    def test_split_hex_input(self):
        """Test that 0x-prefixed hex is accepted."""
        raw = bytes(range(65))
        assert split_signature("0x" + raw.hex()) == split_signature(raw)

    @pytest.mark.parametrize("length", [0, 64, 66, 130])
    def test_split_wrong_length(self, length):
        """Test that anything but 65 bytes is rejected."""
        with pytest.raises(MalformedSignature):
            split_signature(b"\x01" * length)

    def test_split_invalid_hex(self):
        """Test that a non-hex string is rejected."""
        with pytest.raises(MalformedSignature):
            split_signature("not a signature")

    @pytest.mark.parametrize("signature", [65, None, [1] * 65])
    def test_split_rejects_non_byte_input(self, signature):
        """Test that only bytes or hex strings are accepted."""
        with pytest.raises(MalformedSignature):
            split_signature(signature)


class TestJoinSignature:
    """Tests for join_signature."""

    def test_join_pads_components(self):
        """Test that short r and s are left-padded to 32 bytes."""
        joined = join_signature(1, 2, 27)

        assert len(joined) == 65
        assert joined[:32] == b"\x00" * 31 + b"\x01"
        assert joined[32:64] == b"\x00" * 31 + b"\x02"
        assert joined[64] == 27

    def test_join_accepts_bytes_and_hex(self):
        """Test that r and s may be given as bytes or hex."""
        r = b"\xaa" * 32
        s = b"\xbb" * 32
        assert join_signature(r, s, 0) == join_signature("0x" + r.hex(), "0x" + s.hex(), 0)
        assert join_signature(r, s, 0) == join_signature(int.from_bytes(r, "big"), int.from_bytes(s, "big"), 0)

    def test_join_rejects_oversized_component(self):
        """Test that a component longer than 32 bytes is rejected."""
        with pytest.raises(MalformedSignature):
            join_signature(b"\x01" * 33, 1, 27)

    def test_join_rejects_negative_values(self):
        """Test that negative components are rejected."""
        with pytest.raises(MalformedSignature):
            join_signature(-1, 1, 27)
        with pytest.raises(MalformedSignature):
            join_signature(1, 1, -1)

    def test_join_large_v_uses_minimal_encoding(self):
        """Test that chain-offset v above 255 takes two bytes."""
        joined = join_signature(1, 2, 309)
        assert len(joined) == 66
        assert joined[64:] == (309).to_bytes(2, "big")


class TestRoundTrip:
    """Round-trip tests between split and join."""

    @pytest.mark.parametrize("v", [0, 1, 27, 28, 37, 38])
    def test_split_join_round_trip(self, v):
        """Test that split(join(r, s, v)) == (r, s, v)."""
        pk = keys.PrivateKey(bytes.fromhex(TEST_PRIVATE_KEY[2:]))
        native = pk.sign_msg_hash(keccak(text=f"round trip {v}"))

        joined = join_signature(native.r, native.s, v)
        assert split_signature(joined) == Signature(r=native.r, s=native.s, v=v)

    def test_join_split_is_byte_identical(self):
        """Test that re-serializing a wallet signature reproduces its bytes."""
        message = encode_defunct(text="Hello, Ethereum!")
        signature = Account.sign_message(message, private_key=TEST_PRIVATE_KEY).signature

        parsed = split_signature(signature)
        assert join_signature(parsed.r, parsed.s, parsed.v) == signature
        assert parsed.to_bytes() == signature

    def test_to_hex(self):
        """Test hex rendering of a signature."""
        sig = Signature(r=1, s=2, v=27)
        hex_sig = sig.to_hex()

        assert hex_sig.startswith("0x")
        assert len(hex_sig) == 2 + 130
        assert split_signature(hex_sig) == sig
