"""Custody factory.

Creates the appropriate custody backend based on configuration, and the
RemoteKeySigner bound to the configured key.

SECURITY NOTE:
- The local backend keeps a private key in memory and is refused in production
"""

import logging
from typing import Optional

from remote_signer.config import get_settings
from remote_signer.signing.base import CustodyBackend, CustodyType

logger = logging.getLogger(__name__)


def get_custody_type() -> CustodyType:
    """Determine which custody backend to use based on settings.

    Priority:
    1. SIGNER_BACKEND (explicit)
    2. AWS_KMS_KEY_ID present -> KMS
    3. Default to Local

    Returns:
        CustodyType enum
    """
    settings = get_settings()
    explicit = settings.signer_backend.lower()

    if explicit:
        try:
            return CustodyType(explicit)
        except ValueError:
            raise ValueError(f"Unknown signer backend: {settings.signer_backend}") from None

    if settings.aws_kms_key_id:
        return CustodyType.KMS

    return CustodyType.LOCAL


_custody_instance: Optional[CustodyBackend] = None


def get_custody() -> CustodyBackend:
    """Get the configured custody instance.

    Returns singleton instance for the configured custody type.

    Raises:
        RuntimeError: If the local backend is selected in production
    """
    global _custody_instance

    if _custody_instance is not None:
        return _custody_instance

    settings = get_settings()
    custody_type = get_custody_type()
    logger.info(f"Initializing {custody_type.value} custody")

    if custody_type == CustodyType.KMS:
        from remote_signer.signing.kms import KMSCustody
        _custody_instance = KMSCustody(
            region=settings.aws_default_region,
            default_key_id=settings.aws_kms_key_id,
        )

    else:  # LOCAL
        if settings.is_production:
            raise RuntimeError("Local custody is not allowed in production")
        from remote_signer.signing.local import LocalCustody
        _custody_instance = LocalCustody(private_key=settings.local_private_key)

    return _custody_instance


def get_signer():
    """Build a RemoteKeySigner for the configured custody backend and key."""
    from remote_signer.signer import RemoteKeySigner

    settings = get_settings()
    return RemoteKeySigner(
        get_custody(),
        settings.signer_key_id,
        allowed_versions=settings.typed_data_versions,
    )


def reset_custody():
    """Reset the custody instance (for testing)."""
    global _custody_instance
    _custody_instance = None
    get_settings.cache_clear()


async def get_custody_info() -> dict:
    """Get information about the current custody configuration.

    Returns:
        Dict with custody type, health status and backend class
    """
    custody = get_custody()
    health = await custody.health_check()

    return {
        "type": custody.custody_type.value,
        "healthy": health,
        "class": custody.__class__.__name__,
    }
