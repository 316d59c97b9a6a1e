"""Tests for settings and the custody factory."""

import pytest

from remote_signer.config import Settings, get_settings
from remote_signer.signer import RemoteKeySigner
from remote_signer.signing.base import CustodyType
from remote_signer.signing.factory import (
    get_custody,
    get_custody_info,
    get_custody_type,
    get_signer,
    reset_custody,
)
from remote_signer.signing.kms import KMSCustody
from remote_signer.signing.local import LocalCustody
from remote_signer.signing.typed_data import TypedDataVersion

from tests.conftest import TEST_PRIVATE_KEY


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from a clean signer environment."""
    for name in (
        "SIGNER_BACKEND",
        "SIGNER_KEY_ID",
        "AWS_KMS_KEY_ID",
        "AWS_DEFAULT_REGION",
        "LOCAL_PRIVATE_KEY",
        "ALLOWED_TYPED_DATA_VERSIONS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ENVIRONMENT", "test")
    reset_custody()
    yield
    reset_custody()


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.signer_backend == ""
        assert settings.signer_key_id == "default"
        assert settings.typed_data_versions is None

    def test_allowed_versions(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_TYPED_DATA_VERSIONS", "V3, V4")
        assert Settings(_env_file=None).typed_data_versions == ["V3", "V4"]

    def test_safe_dict_redacts_private_key(self, monkeypatch):
        monkeypatch.setenv("LOCAL_PRIVATE_KEY", TEST_PRIVATE_KEY)
        data = Settings(_env_file=None).get_safe_dict()

        assert data["local_private_key"] == "***"
        assert TEST_PRIVATE_KEY not in str(data)

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()


class TestFactory:
    """Tests for custody selection."""

    def test_default_is_local(self):
        assert get_custody_type() == CustodyType.LOCAL

    def test_kms_auto_detected(self, monkeypatch):
        monkeypatch.setenv("AWS_KMS_KEY_ID", "alias/treasury")
        reset_custody()

        assert get_custody_type() == CustodyType.KMS
        custody = get_custody()
        assert isinstance(custody, KMSCustody)
        assert custody.default_key_id == "alias/treasury"

    def test_explicit_backend(self, monkeypatch):
        monkeypatch.setenv("AWS_KMS_KEY_ID", "alias/treasury")
        monkeypatch.setenv("SIGNER_BACKEND", "local")
        reset_custody()

        assert get_custody_type() == CustodyType.LOCAL

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setenv("SIGNER_BACKEND", "vault")
        reset_custody()

        with pytest.raises(ValueError, match="Unknown signer backend"):
            get_custody_type()

    def test_singleton(self):
        assert get_custody() is get_custody()

    def test_local_refused_in_production(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        reset_custody()

        with pytest.raises(RuntimeError):
            get_custody()

    @pytest.mark.asyncio
    async def test_get_signer(self, monkeypatch):
        monkeypatch.setenv("LOCAL_PRIVATE_KEY", TEST_PRIVATE_KEY)
        monkeypatch.setenv("ALLOWED_TYPED_DATA_VERSIONS", "V4")
        reset_custody()

        signer = get_signer()

        assert isinstance(signer, RemoteKeySigner)
        assert isinstance(signer.custody, LocalCustody)
        assert signer.allowed_versions == [TypedDataVersion.V4]
        assert await signer.get_address() == (await signer.connect(LocalCustody(TEST_PRIVATE_KEY)).get_address())

    @pytest.mark.asyncio
    async def test_custody_info(self, monkeypatch):
        monkeypatch.setenv("LOCAL_PRIVATE_KEY", TEST_PRIVATE_KEY)
        reset_custody()

        info = await get_custody_info()

        assert info == {"type": "local", "healthy": True, "class": "LocalCustody"}
