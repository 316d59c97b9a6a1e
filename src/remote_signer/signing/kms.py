"""AWS KMS custody backend.

Uses AWS Key Management Service for secure key storage and signing.
KMS keys never leave AWS - signing happens in the cloud and KMS returns a
DER-encoded (r, s) pair without a recovery parameter.

Setup:
1. Create an asymmetric key in AWS KMS (ECC_SECG_P256K1, SIGN_VERIFY)
2. Set AWS_KMS_KEY_ID (or pass a key ID/ARN/alias as the signer key id)
3. Configure AWS credentials (IAM role, access keys, etc.)

Reference:
- https://docs.aws.amazon.com/kms/latest/developerguide/symm-asymm-concepts.html
"""

import asyncio
import logging
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from cryptography.hazmat.primitives.asymmetric.ec import SECP256K1, EllipticCurvePublicKey
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_der_public_key,
)

from remote_signer.signing.base import (
    CustodyBackend,
    CustodyError,
    CustodyType,
    KeyNotFoundError,
    MalformedSignature,
    RawSignature,
)

logger = logging.getLogger(__name__)


class KMSCustody(CustodyBackend):
    """AWS KMS custody backend.

    Uses AWS KMS asymmetric keys for signing. Supports:
    - ECC_SECG_P256K1 (secp256k1)
    - ECDSA_SHA_256 over a caller-supplied digest (MessageType=DIGEST)

    Keys are identified by:
    - AWS KMS Key ID (e.g., "1234abcd-12ab-34cd-56ef-1234567890ab")
    - AWS KMS Key ARN
    - AWS KMS Key Alias (e.g., "alias/my-signing-key")
    """

    def __init__(
        self,
        region: Optional[str] = None,
        default_key_id: Optional[str] = None,
        client: Any = None,
    ):
        """Initialize KMS custody.

        Args:
            region: AWS region (defaults to us-east-1)
            default_key_id: KMS key used when a key id is not a KMS identifier
            client: Pre-built boto3 KMS client (created lazily if omitted)
        """
        super().__init__(CustodyType.KMS)
        self.region = region or "us-east-1"
        self.default_key_id = default_key_id
        self._client = client
        if default_key_id:
            logger.info("Loaded default KMS key")

    @property
    def client(self):
        """Lazy load the KMS client."""
        if self._client is None:
            self._client = boto3.client("kms", region_name=self.region)
        return self._client

    def _get_key_id(self, key_id: str) -> str:
        """Resolve KMS key ID for signing.

        Raises:
            KeyNotFoundError: If no key configured
        """
        # Try key_id directly (might be KMS ID)
        if key_id.startswith("arn:") or key_id.startswith("alias/") or "-" in key_id:
            return key_id

        # Fall back to default
        if self.default_key_id:
            return self.default_key_id

        raise KeyNotFoundError(f"No KMS key configured for {key_id}")

    async def _call(self, operation: str, **kwargs):
        """Run a blocking KMS call in the thread pool, translating SDK errors."""
        method = getattr(self.client, operation)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, lambda: method(**kwargs))
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "AccessDeniedException":
                raise CustodyError("Access denied to KMS key. Check IAM permissions.") from e
            elif error_code == "NotFoundException":
                raise KeyNotFoundError("KMS key not found. Check key ID/ARN.") from e
            logger.error(f"KMS {operation} error: {e}")
            raise CustodyError(str(e)) from e
        except BotoCoreError as e:
            logger.error(f"KMS {operation} failed: {e}")
            raise CustodyError(str(e)) from e

    async def request_raw_signature(self, digest: bytes, key_id: str) -> RawSignature:
        """Sign a digest using AWS KMS."""
        if len(digest) != 32:
            raise ValueError(f"Digest must be 32 bytes, got {len(digest)}")

        kms_key_id = self._get_key_id(key_id)
        response = await self._call(
            "sign",
            KeyId=kms_key_id,
            Message=bytes(digest),
            MessageType="DIGEST",
            SigningAlgorithm="ECDSA_SHA_256",
        )
        return parse_der_signature(response["Signature"])

    async def get_public_key(self, key_id: str) -> bytes:
        """Get the 64-byte raw public key from KMS."""
        kms_key_id = self._get_key_id(key_id)
        response = await self._call("get_public_key", KeyId=kms_key_id)
        return parse_der_public_key(response["PublicKey"])

    async def health_check(self) -> bool:
        """Check if KMS is accessible."""
        try:
            # Try to list keys (minimal permission check)
            await self._call("list_keys", Limit=1)
            return True
        except CustodyError as e:
            logger.warning(f"KMS health check failed: {e}")
            return False


def parse_der_signature(der_signature: bytes) -> RawSignature:
    """Parse a DER-encoded ECDSA signature into r and s.

    DER format: 0x30 [total-length] 0x02 [r-length] [r] 0x02 [s-length] [s]
    """
    try:
        r, s = decode_dss_signature(bytes(der_signature))
    except ValueError as e:
        raise MalformedSignature(f"Invalid DER signature: {e}") from e
    return RawSignature(r=r, s=s)


def parse_der_public_key(der_key: bytes) -> bytes:
    """Parse a DER SubjectPublicKeyInfo into the 64-byte raw key (without 0x04 prefix)."""
    try:
        public_key = load_der_public_key(bytes(der_key))
    except ValueError as e:
        raise CustodyError(f"Cannot parse DER public key: {e}") from e

    if not isinstance(public_key, EllipticCurvePublicKey) or not isinstance(public_key.curve, SECP256K1):
        raise CustodyError("KMS key is not a secp256k1 key")

    # Uncompressed: 04 || x || y
    raw = public_key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
    return raw[1:]
