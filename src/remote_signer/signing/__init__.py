"""Signature reconciliation for remote custody keys.

Provides:
- Signature codec (split/join of r || s || v)
- Recovery id resolution against a known signer address
- Digest computation for messages, typed data (V1/V3/V4) and transactions
- Custody backends: KMSCustody (AWS KMS) and LocalCustody (development)
"""

from remote_signer.signing.base import (
    CustodyBackend,
    CustodyError,
    KeyNotFoundError,
    MalformedSignature,
    MissingDataError,
    RawSignature,
    RecoveryMismatch,
    SenderMismatch,
    SigningError,
    TypedDataError,
    UnsupportedVersion,
    VersionNotAllowed,
)
from remote_signer.signing.codec import Signature, join_signature, split_signature
from remote_signer.signing.digest import PlainMessage, Transaction, TypedData, digest_for
from remote_signer.signing.factory import get_custody
from remote_signer.signing.local import LocalCustody
from remote_signer.signing.recovery import (
    recover_address,
    recover_typed_signature,
    resolve_recovery_id,
    resolve_signature,
)
from remote_signer.signing.typed_data import TypedDataVersion, validate_version

__all__ = [
    "CustodyBackend",
    "CustodyError",
    "KeyNotFoundError",
    "MalformedSignature",
    "MissingDataError",
    "RawSignature",
    "RecoveryMismatch",
    "SenderMismatch",
    "SigningError",
    "TypedDataError",
    "UnsupportedVersion",
    "VersionNotAllowed",
    "Signature",
    "join_signature",
    "split_signature",
    "PlainMessage",
    "Transaction",
    "TypedData",
    "digest_for",
    "get_custody",
    "LocalCustody",
    "recover_address",
    "recover_typed_signature",
    "resolve_recovery_id",
    "resolve_signature",
    "TypedDataVersion",
    "validate_version",
]
