"""Ethereum signing with keys held by a remote custody service."""

__version__ = "0.1.0"

from remote_signer.signer import RemoteKeySigner
from remote_signer.signing.typed_data import TypedDataVersion

__all__ = ["RemoteKeySigner", "TypedDataVersion", "__version__"]
