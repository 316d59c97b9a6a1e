"""Pytest configuration and fixtures."""

import os

import pytest
from eth_account import Account

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"

from remote_signer.signer import RemoteKeySigner
from remote_signer.signing.base import RawSignature
from remote_signer.signing.local import LocalCustody
from remote_signer.signing.recovery import SECP256K1_N

TEST_PRIVATE_KEY = "0x57d42336a4959b7f56cbde74ae2d50003d89e427b184c86ceac7d99a924ef706"
OTHER_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


class HighSCustody(LocalCustody):
    """Custody double that returns the high-s form of every signature."""

    async def request_raw_signature(self, digest: bytes, key_id: str) -> RawSignature:
        raw = await super().request_raw_signature(digest, key_id)
        return RawSignature(r=raw.r, s=SECP256K1_N - raw.s)


class CountingCustody(LocalCustody):
    """Custody double that counts calls to the custody service."""

    def __init__(self, private_key=None):
        super().__init__(private_key)
        self.public_key_calls = 0
        self.sign_calls = 0

    async def get_public_key(self, key_id: str) -> bytes:
        self.public_key_calls += 1
        return await super().get_public_key(key_id)

    async def request_raw_signature(self, digest: bytes, key_id: str) -> RawSignature:
        self.sign_calls += 1
        return await super().request_raw_signature(digest, key_id)


class MismatchedCustody(LocalCustody):
    """Custody double that publishes one key and signs with another."""

    def __init__(self, public_key_hex: str, signing_key_hex: str):
        super().__init__()
        self.add_key("public", public_key_hex)
        self.add_key("signing", signing_key_hex)

    async def get_public_key(self, key_id: str) -> bytes:
        return await super().get_public_key("public")

    async def request_raw_signature(self, digest: bytes, key_id: str) -> RawSignature:
        return await super().request_raw_signature(digest, "signing")


@pytest.fixture
def test_account():
    """Account for the test private key."""
    return Account.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def custody() -> CountingCustody:
    """In-memory custody holding the test key under "default"."""
    return CountingCustody(private_key=TEST_PRIVATE_KEY)


@pytest.fixture
def signer(custody) -> RemoteKeySigner:
    """Signer bound to the test key."""
    return RemoteKeySigner(custody, "default")


@pytest.fixture
def mail_typed_data() -> dict:
    """The EIP-712 reference example (nested structs, no arrays)."""
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Person": [
                {"name": "name", "type": "string"},
                {"name": "wallet", "type": "address"},
            ],
            "Mail": [
                {"name": "from", "type": "Person"},
                {"name": "to", "type": "Person"},
                {"name": "contents", "type": "string"},
            ],
        },
        "primaryType": "Mail",
        "domain": {
            "name": "Ether Mail",
            "version": "1",
            "chainId": 1,
            "verifyingContract": "0xCcCCccccCCCCcCCCCCCcCcCccCcCCCcCcccccccC",
        },
        "message": {
            "from": {"name": "Cow", "wallet": "0xCD2a3d9F938E13CD947Ec05AbC7FE734Df8DD826"},
            "to": {"name": "Bob", "wallet": "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"},
            "contents": "Hello, Bob!",
        },
    }


@pytest.fixture
def group_typed_data() -> dict:
    """Typed data with arrays of structs and of strings (V4 only)."""
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Person": [
                {"name": "name", "type": "string"},
                {"name": "wallet", "type": "address"},
            ],
            "Group": [
                {"name": "name", "type": "string"},
                {"name": "members", "type": "Person[]"},
                {"name": "tags", "type": "string[]"},
            ],
        },
        "primaryType": "Group",
        "domain": {
            "name": "Ether Group",
            "version": "2",
            "chainId": 137,
            "verifyingContract": "0xCcCCccccCCCCcCCCCCCcCcCccCcCCCcCcccccccC",
        },
        "message": {
            "name": "Treasury",
            "members": [
                {"name": "Cow", "wallet": "0xCD2a3d9F938E13CD947Ec05AbC7FE734Df8DD826"},
                {"name": "Bob", "wallet": "0xbBbBBBBbbBBBbbbBbbBbbbbBBbBbbbbBbBbbBBbB"},
            ],
            "tags": ["ops", "multisig"],
        },
    }
