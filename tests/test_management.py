"""Tests for the routing administration interface."""

import hashlib
import os
from datetime import timedelta

import httpx
import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from conftest import CUSTOM_ENDPOINT, MASTER_KEY
from src.ai_routing import (
    HIDDEN_KEY,
    ProviderRecord,
    RoutingAdmin,
    UsageLogEntry,
    UsageStatus,
    summarize_usage,
)
from src.ai_routing.models import utcnow
from src.gateway_errors import (
    InvalidConfigurationError,
    ModelNotFoundError,
    ProviderAPIError,
    ProviderNotFoundError,
)
from src.model_providers import ProviderRegistry
from src.secrets_vault import CredentialVault, VaultConfig


@pytest.fixture
def admin(repository, vault, http_client):
    return RoutingAdmin(repository, vault, ProviderRegistry(http_client=http_client))


def legacy_token(plaintext: str) -> str:
    key = hashlib.sha256(MASTER_KEY.encode()).digest()
    iv = os.urandom(16)
    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext.encode()) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return f"{iv.hex()}:{(encryptor.update(padded) + encryptor.finalize()).hex()}"


# ═══════════════════════════════════════════════════════════════════════
# Test Providers
# ═══════════════════════════════════════════════════════════════════════


class TestProviderAdmin:
    @pytest.mark.asyncio
    async def test_create_encrypts_key(self, admin, vault):
        provider = await admin.create_provider("OpenAI", "openai", "sk-plain-secret")

        assert provider.encrypted_api_key != "sk-plain-secret"
        assert "sk-plain-secret" not in provider.encrypted_api_key
        assert vault.decrypt(provider.encrypted_api_key) == "sk-plain-secret"
        assert provider.api_endpoint == "https://api.openai.com/v1"
        assert provider.type == "openai"
        assert provider.is_active is True

    @pytest.mark.asyncio
    async def test_type_normalized_and_endpoint_trimmed(self, admin):
        provider = await admin.create_provider(
            " Claude ", "Anthropic", "ak", api_endpoint="https://proxy.example/v1/"
        )
        assert provider.name == "Claude"
        assert provider.type == "anthropic"
        assert provider.api_endpoint == "https://proxy.example/v1"

    @pytest.mark.asyncio
    async def test_custom_requires_endpoint(self, admin):
        with pytest.raises(InvalidConfigurationError) as exc_info:
            await admin.create_provider("Local", "custom", "key")
        assert exc_info.value.field == "api_endpoint"

        provider = await admin.create_provider("Local", "custom", "key", api_endpoint=CUSTOM_ENDPOINT)
        assert provider.api_endpoint == CUSTOM_ENDPOINT

    @pytest.mark.asyncio
    async def test_unsupported_type(self, admin):
        with pytest.raises(InvalidConfigurationError) as exc_info:
            await admin.create_provider("Mistral", "mistral", "key")
        assert exc_info.value.field == "type"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name,key,field", [
        ("", "key", "name"),
        ("   ", "key", "name"),
        ("OpenAI", "", "api_key"),
    ])
    async def test_required_fields(self, admin, name, key, field):
        with pytest.raises(InvalidConfigurationError) as exc_info:
            await admin.create_provider(name, "openai", key)
        assert exc_info.value.field == field

    @pytest.mark.asyncio
    async def test_rotate_key(self, admin, vault):
        provider = await admin.create_provider("OpenAI", "openai", "sk-old")
        rotated = await admin.rotate_provider_key(provider.id, "sk-new")
        assert vault.decrypt(rotated.encrypted_api_key) == "sk-new"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["sk-test…", "sk-ключ", "sk-line\nbreak", "sk-tab\tkey"])
    async def test_unsendable_key_rejected(self, admin, repository, key):
        with pytest.raises(InvalidConfigurationError) as exc_info:
            await admin.create_provider("OpenAI", "openai", key)
        assert exc_info.value.field == "api_key"
        assert await repository.list_providers() == []

    @pytest.mark.asyncio
    async def test_rotate_rejects_unsendable_key(self, admin, vault):
        provider = await admin.create_provider("OpenAI", "openai", "sk-old")
        with pytest.raises(InvalidConfigurationError):
            await admin.rotate_provider_key(provider.id, "sk-new…")
        stored = await admin.repository.get_provider(provider.id)
        assert vault.decrypt(stored.encrypted_api_key) == "sk-old"

    @pytest.mark.asyncio
    async def test_rotate_missing_provider(self, admin):
        with pytest.raises(ProviderNotFoundError):
            await admin.rotate_provider_key("ghost", "sk")

    @pytest.mark.asyncio
    async def test_toggle(self, admin):
        provider = await admin.create_provider("OpenAI", "openai", "sk")
        assert (await admin.toggle_provider(provider.id)).is_active is False
        assert (await admin.toggle_provider(provider.id)).is_active is True
        assert (await admin.set_provider_active(provider.id, False)).is_active is False

    @pytest.mark.asyncio
    async def test_views_hide_key(self, admin):
        await admin.create_provider("OpenAI", "openai", "sk-secret", sort_order=2)
        await admin.create_provider("Gemini", "google", "g-secret", sort_order=1)

        views = await admin.list_provider_views()

        assert [v["name"] for v in views] == ["Gemini", "OpenAI"]
        assert all(v["api_key"] == HIDDEN_KEY for v in views)
        assert all("encrypted_api_key" not in v for v in views)


# ═══════════════════════════════════════════════════════════════════════
# Test Models
# ═══════════════════════════════════════════════════════════════════════


class TestModelAdmin:
    @pytest.mark.asyncio
    async def test_add_model_uses_catalog(self, admin):
        provider = await admin.create_provider("Claude", "anthropic", "ak")
        model = await admin.add_model(provider.id, "claude-3-opus-20240229")

        assert model.is_manual is True
        assert model.is_active is True
        assert (model.input_price, model.output_price) == (15.0, 75.0)
        assert model.max_tokens == 200_000
        assert model.name == "claude-3-opus-20240229"
        assert model.total_calls == 0

    @pytest.mark.asyncio
    async def test_add_model_overrides(self, admin):
        provider = await admin.create_provider("OpenAI", "openai", "sk")
        model = await admin.add_model(
            provider.id, "gpt-4o", name="GPT-4o (EU)", input_price=2.5, output_price=10.0,
            max_tokens=16384,
        )
        assert model.name == "GPT-4o (EU)"
        assert (model.input_price, model.output_price) == (2.5, 10.0)
        assert model.max_tokens == 16384

    @pytest.mark.asyncio
    async def test_zero_price_override_kept(self, admin):
        provider = await admin.create_provider("OpenAI", "openai", "sk")
        model = await admin.add_model(provider.id, "gpt-4o", input_price=0.0, output_price=0.0)
        assert (model.input_price, model.output_price) == (0.0, 0.0)

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self, admin):
        provider = await admin.create_provider("OpenAI", "openai", "sk")
        await admin.add_model(provider.id, "gpt-4o")
        with pytest.raises(InvalidConfigurationError):
            await admin.add_model(provider.id, "gpt-4o")

    @pytest.mark.asyncio
    async def test_negative_price_rejected(self, admin):
        provider = await admin.create_provider("OpenAI", "openai", "sk")
        with pytest.raises(InvalidConfigurationError) as exc_info:
            await admin.add_model(provider.id, "gpt-4o", output_price=-1.0)
        assert exc_info.value.field == "output_price"

    @pytest.mark.asyncio
    async def test_unknown_provider(self, admin):
        with pytest.raises(ProviderNotFoundError):
            await admin.add_model("ghost", "gpt-4o")

    @pytest.mark.asyncio
    async def test_set_model_active(self, admin):
        provider = await admin.create_provider("OpenAI", "openai", "sk")
        model = await admin.add_model(provider.id, "gpt-4o")
        assert (await admin.set_model_active(model.id, False)).is_active is False
        with pytest.raises(ModelNotFoundError):
            await admin.set_model_active("ghost", True)


class TestModelSync:
    @pytest.mark.asyncio
    async def test_sync_openai(self, admin, upstream, repository):
        provider = await admin.create_provider("OpenAI", "openai", "sk-sync")
        upstream.on("/models", httpx.Response(200, json={"data": [
            {"id": "gpt-4o"}, {"id": "gpt-4o-mini"},
        ]}))

        report = await admin.sync_models(provider.id)

        assert sorted(report.created) == ["gpt-4o", "gpt-4o-mini"]
        assert report.updated == []
        assert report.total == 2
        assert upstream.requests[0].headers["Authorization"] == "Bearer sk-sync"
        mini = next(m for m in await repository.list_models(provider.id) if m.model_id == "gpt-4o-mini")
        assert (mini.input_price, mini.output_price) == (0.15, 0.6)
        assert mini.is_manual is False

    @pytest.mark.asyncio
    async def test_resync_preserves_state(self, admin, upstream, repository):
        provider = await admin.create_provider("OpenAI", "openai", "sk")
        upstream.on("/models", httpx.Response(200, json={"data": [{"id": "gpt-4o"}]}))
        await admin.sync_models(provider.id)
        [model] = await repository.list_models(provider.id)
        await admin.set_model_active(model.id, False)
        await repository.increment_model_counters(model.id, success=True)

        report = await admin.sync_models(provider.id)

        assert report.created == []
        assert report.updated == ["gpt-4o"]
        [refreshed] = await repository.list_models(provider.id)
        assert refreshed.id == model.id
        assert refreshed.is_active is False
        assert refreshed.total_calls == 1

    @pytest.mark.asyncio
    async def test_sync_anthropic_known_models(self, admin, upstream):
        provider = await admin.create_provider("Claude", "anthropic", "ak")
        upstream.on("/messages", upstream.anthropic())

        report = await admin.sync_models(provider.id)

        assert len(report.created) == 5
        assert "claude-3-5-sonnet-20241022" in report.created

    @pytest.mark.asyncio
    async def test_sync_rejected_key(self, admin, upstream, repository):
        provider = await admin.create_provider("OpenAI", "openai", "sk-bad")
        upstream.on("/models", upstream.error(401, "invalid api key"))

        with pytest.raises(ProviderAPIError):
            await admin.sync_models(provider.id)
        assert await repository.list_models(provider.id) == []

    @pytest.mark.asyncio
    async def test_sync_custom_uses_endpoint(self, admin, upstream):
        provider = await admin.create_provider("Local", "custom", "k", api_endpoint=CUSTOM_ENDPOINT)
        upstream.on("llm.internal.example/v1/models", httpx.Response(200, json={"data": [
            {"id": "llama-3-70b"},
        ]}))

        report = await admin.sync_models(provider.id)
        assert report.created == ["llama-3-70b"]


# ═══════════════════════════════════════════════════════════════════════
# Test Routing Config
# ═══════════════════════════════════════════════════════════════════════


class TestRoutingConfigAdmin:
    @pytest.mark.asyncio
    async def test_get_creates_defaults(self, admin, repository):
        config = await admin.get_routing_config()
        assert config.id is not None
        assert config.primary_model_id is None
        assert config.enable_fallback is True
        assert config.retry_attempts == 3
        assert config.timeout_seconds == 30
        assert (await admin.get_routing_config()).id == config.id

    @pytest.mark.asyncio
    async def test_update_valid_chain(self, admin):
        provider = await admin.create_provider("OpenAI", "openai", "sk")
        primary = await admin.add_model(provider.id, "gpt-4o")
        fallback = await admin.add_model(provider.id, "gpt-4o-mini")
        original = await admin.get_routing_config()

        config = await admin.update_routing_config(
            primary_model_id=primary.id, fallback1_model_id=fallback.id,
            retry_attempts=2, timeout_seconds=60,
        )

        assert config.id == original.id
        assert config.chain() == [(0, primary.id), (1, fallback.id)]
        assert config.retry_attempts == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs,field", [
        ({"retry_attempts": 0}, "retry_attempts"),
        ({"retry_attempts": 11}, "retry_attempts"),
        ({"retry_attempts": True}, "retry_attempts"),
        ({"timeout_seconds": 4}, "timeout_seconds"),
        ({"timeout_seconds": 301}, "timeout_seconds"),
    ])
    async def test_ranges(self, admin, kwargs, field):
        with pytest.raises(InvalidConfigurationError) as exc_info:
            await admin.update_routing_config(**kwargs)
        assert exc_info.value.field == field

    @pytest.mark.asyncio
    async def test_bounds_inclusive(self, admin):
        config = await admin.update_routing_config(retry_attempts=10, timeout_seconds=5)
        assert (config.retry_attempts, config.timeout_seconds) == (10, 5)
        config = await admin.update_routing_config(retry_attempts=1, timeout_seconds=300)
        assert (config.retry_attempts, config.timeout_seconds) == (1, 300)

    @pytest.mark.asyncio
    async def test_unknown_model_rejected(self, admin):
        with pytest.raises(InvalidConfigurationError) as exc_info:
            await admin.update_routing_config(primary_model_id="ghost")
        assert exc_info.value.field == "primary_model_id"

    @pytest.mark.asyncio
    async def test_inactive_model_rejected(self, admin):
        provider = await admin.create_provider("OpenAI", "openai", "sk")
        model = await admin.add_model(provider.id, "gpt-4o", is_active=False)
        with pytest.raises(InvalidConfigurationError) as exc_info:
            await admin.update_routing_config(fallback2_model_id=model.id)
        assert exc_info.value.field == "fallback2_model_id"


# ═══════════════════════════════════════════════════════════════════════
# Test Credential Migration
# ═══════════════════════════════════════════════════════════════════════


class TestLegacyMigration:
    @pytest.mark.asyncio
    async def test_migrates_only_legacy_rows(self, repository, vault):
        migrating_vault = CredentialVault(
            MASTER_KEY, VaultConfig(pbkdf2_iterations=1_000, allow_legacy=True)
        )
        admin = RoutingAdmin(repository, migrating_vault)
        await repository.save_provider(ProviderRecord(
            id="old", name="Old", type="openai", encrypted_api_key=legacy_token("sk-legacy"),
        ))
        current = await admin.create_provider("New", "openai", "sk-current")

        migrated = await admin.migrate_legacy_credentials()

        assert migrated == ["old"]
        old = await repository.get_provider("old")
        assert not CredentialVault.is_legacy(old.encrypted_api_key)
        assert vault.decrypt(old.encrypted_api_key) == "sk-legacy"
        unchanged = await repository.get_provider(current.id)
        assert unchanged.encrypted_api_key == current.encrypted_api_key

    @pytest.mark.asyncio
    async def test_nothing_to_migrate(self, admin):
        await admin.create_provider("New", "openai", "sk")
        assert await admin.migrate_legacy_credentials() == []


# ═══════════════════════════════════════════════════════════════════════
# Test Reporting
# ═══════════════════════════════════════════════════════════════════════


class TestUsageReporting:
    @pytest.mark.asyncio
    async def test_summary_window(self, admin, repository):
        now = utcnow()
        for age_days, status, level in [
            (1, UsageStatus.SUCCESS, 0),
            (2, UsageStatus.SUCCESS, 1),
            (3, UsageStatus.FAILED, 0),
            (45, UsageStatus.SUCCESS, 0),
        ]:
            await repository.add_usage_log(UsageLogEntry(
                model_id="m1", prompt="p", status=status, cost=0.5,
                used_fallback=level > 0, fallback_level=level,
                created_at=now - timedelta(days=age_days),
            ))

        summary = await admin.usage_summary(days=30)

        assert summary.total_requests == 3
        assert summary.success_count == 2
        assert summary.failed_count == 1
        assert summary.fallback_count == 1
        assert summary.total_cost == pytest.approx(1.5)
        assert (await admin.usage_summary(days=60)).total_requests == 4

    @pytest.mark.asyncio
    async def test_days_must_be_positive(self, admin):
        with pytest.raises(InvalidConfigurationError):
            await admin.usage_summary(days=0)

    @pytest.mark.asyncio
    async def test_summary_needs_no_vault(self, repository):
        await repository.add_usage_log(UsageLogEntry(
            model_id="m1", prompt="p", status=UsageStatus.SUCCESS, cost=0.25,
        ))
        summary = await summarize_usage(repository, days=7, model_id="m1")
        assert summary.total_requests == 1
        assert summary.total_cost == pytest.approx(0.25)
