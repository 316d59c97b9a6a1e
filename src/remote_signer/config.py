"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")

    # ======================
    # Custody backend
    # ======================
    signer_backend: str = Field(
        default="", description="Custody backend: kms or local (empty = auto-detect)"
    )
    signer_key_id: str = Field(
        default="default", description="Key identifier passed to the custody service"
    )

    # ======================
    # AWS KMS
    # ======================
    aws_default_region: str = Field(default="us-east-1", description="AWS region of the KMS key")
    aws_kms_key_id: Optional[str] = Field(
        default=None, description="Default KMS key ID, ARN or alias (ECC_SECG_P256K1)"
    )

    # ======================
    # Local custody (development only)
    # ======================
    local_private_key: Optional[str] = Field(
        default=None, description="Hex private key for the in-memory custody backend"
    )

    # ======================
    # Typed data
    # ======================
    allowed_typed_data_versions: str = Field(
        default="", description="Comma-separated allow-list of typed data versions (empty = all)"
    )

    @property
    def typed_data_versions(self) -> Optional[list[str]]:
        """Parse the typed data allow-list, or None when every version is allowed."""
        if not self.allowed_typed_data_versions.strip():
            return None
        return [v.strip() for v in self.allowed_typed_data_versions.split(",") if v.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "signer_backend": self.signer_backend or "(auto)",
            "signer_key_id": self.signer_key_id,
            "aws": {
                "region": self.aws_default_region,
                "kms_key_id": self.aws_kms_key_id or "(not set)",
            },
            "local_private_key": "***" if self.local_private_key else "(not set)",
            "allowed_typed_data_versions": self.allowed_typed_data_versions or "(all)",
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
