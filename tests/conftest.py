"""Pytest configuration and shared fixtures."""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import httpx
import pytest
import pytest_asyncio

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.ai_routing import (  # noqa: E402
    FailoverOrchestrator,
    InMemoryRoutingRepository,
    ModelRecord,
    ProviderRecord,
    RoutingConfigRecord,
    SqlAlchemyRoutingRepository,
)
from src.db import build_async_engine, get_async_session_factory, init_db  # noqa: E402
from src.model_providers import ProviderRegistry  # noqa: E402
from src.secrets_vault import CredentialVault, VaultConfig  # noqa: E402
from src.settings import get_settings  # noqa: E402

MASTER_KEY = "unit-test-master-key-0123456789-abcdef"
# Low iteration count keeps key derivation fast in tests.
TEST_VAULT_CONFIG = VaultConfig(pbkdf2_iterations=1_000)

OPENAI_ENDPOINT = "https://api.openai.com/v1"
ANTHROPIC_ENDPOINT = "https://api.anthropic.com/v1"
GOOGLE_ENDPOINT = "https://generativelanguage.googleapis.com/v1"
CUSTOM_ENDPOINT = "https://llm.internal.example/v1"


@pytest.fixture(autouse=True)
def reset_settings():
    """Drop cached settings so env overrides apply per test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def restore_root_logging():
    """configure_logging() replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def vault():
    return CredentialVault(MASTER_KEY, TEST_VAULT_CONFIG)


# ── Upstream HTTP stub ────────────────────────────────────────────────


class UpstreamStub:
    """httpx.MockTransport handler routing on URL fragments.

    Each route holds a queue of responses (or exceptions to raise);
    the last one repeats. Every request is recorded.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._routes: list[tuple[str, list]] = []

    def on(self, fragment: str, *responses: Union[httpx.Response, Exception]) -> None:
        self._routes.append((fragment, list(responses)))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        for fragment, queue in self._routes:
            if fragment in url:
                item = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(item, Exception):
                    raise item
                return item
        return httpx.Response(404, json={"error": f"no stub for {url}"})

    def hits(self, fragment: str) -> int:
        return sum(1 for r in self.requests if fragment in str(r.url))

    # ── Native payload builders ──

    @staticmethod
    def openai(text: str = "ok", prompt_tokens: int = 10, completion_tokens: int = 5):
        return httpx.Response(200, json={
            "id": "chatcmpl-1",
            "choices": [{"index": 0, "message": {"role": "assistant", "content": text}}],
            "usage": {"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens},
        })

    @staticmethod
    def anthropic(text: str = "ok", input_tokens: int = 10, output_tokens: int = 5):
        return httpx.Response(200, json={
            "id": "msg_1",
            "type": "message",
            "content": [{"type": "text", "text": text}],
            "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
        })

    @staticmethod
    def google(text: str = "ok", prompt_tokens: int = 10, candidate_tokens: int = 5):
        return httpx.Response(200, json={
            "candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}],
            "usageMetadata": {
                "promptTokenCount": prompt_tokens,
                "candidatesTokenCount": candidate_tokens,
            },
        })

    @staticmethod
    def error(status: int, message: str = "upstream failure"):
        return httpx.Response(status, json={"error": {"message": message}})


@pytest.fixture
def upstream():
    return UpstreamStub()


@pytest_asyncio.fixture
async def http_client(upstream):
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as client:
        yield client


# ── Repositories ──────────────────────────────────────────────────────


@pytest.fixture
def repository():
    return InMemoryRoutingRepository()


@pytest_asyncio.fixture
async def sqlite_engine(tmp_path):
    engine = build_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gateway.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_repository(sqlite_engine):
    return SqlAlchemyRoutingRepository(get_async_session_factory(sqlite_engine))


# ── Routing setup helper ──────────────────────────────────────────────


class GatewaySetup:
    """Seeds providers, models and routing config into a repository."""

    def __init__(self, repository, vault, http_client):
        self.repository = repository
        self.vault = vault
        self.http_client = http_client

    async def provider(
        self,
        provider_id: str,
        provider_type: str = "openai",
        api_endpoint: Optional[str] = None,
        api_key: str = "sk-test",
        is_active: bool = True,
        encrypted_api_key: Optional[str] = None,
    ) -> ProviderRecord:
        endpoints = {
            "openai": OPENAI_ENDPOINT,
            "anthropic": ANTHROPIC_ENDPOINT,
            "google": GOOGLE_ENDPOINT,
            "custom": CUSTOM_ENDPOINT,
        }
        return await self.repository.save_provider(ProviderRecord(
            id=provider_id,
            name=f"{provider_type}-{provider_id}",
            type=provider_type,
            api_endpoint=api_endpoint or endpoints.get(provider_type),
            encrypted_api_key=encrypted_api_key or self.vault.encrypt(api_key),
            is_active=is_active,
        ))

    async def model(
        self,
        model_id: str,
        provider_id: str,
        native_id: str = "gpt-4o",
        input_price: float = 3.0,
        output_price: float = 15.0,
        is_active: bool = True,
    ) -> ModelRecord:
        return await self.repository.save_model(ModelRecord(
            id=model_id,
            provider_id=provider_id,
            model_id=native_id,
            name=native_id,
            input_price=input_price,
            output_price=output_price,
            is_active=is_active,
        ))

    async def route(
        self,
        primary: Optional[str],
        fallback1: Optional[str] = None,
        fallback2: Optional[str] = None,
        enable_fallback: bool = True,
        retry_attempts: int = 1,
        timeout_seconds: int = 30,
    ) -> RoutingConfigRecord:
        return await self.repository.save_routing_config(RoutingConfigRecord(
            primary_model_id=primary,
            fallback1_model_id=fallback1,
            fallback2_model_id=fallback2,
            enable_fallback=enable_fallback,
            retry_attempts=retry_attempts,
            timeout_seconds=timeout_seconds,
        ))

    def orchestrator(self, adapters=(), **kwargs) -> FailoverOrchestrator:
        """Build an orchestrator; ``adapters`` replace the stock ones by type."""
        kwargs.setdefault("retry_backoff_seconds", 0.0)
        providers = ProviderRegistry(http_client=self.http_client)
        for adapter in adapters:
            providers.register(adapter)
        return FailoverOrchestrator(self.repository, self.vault, providers, **kwargs)


@pytest.fixture
def gateway(repository, vault, http_client):
    return GatewaySetup(repository, vault, http_client)


@pytest.fixture
def sql_gateway(sql_repository, vault, http_client):
    return GatewaySetup(sql_repository, vault, http_client)


async def three_chain(gateway: GatewaySetup, **route_kwargs) -> None:
    """primary=openai (m1), fallback1=anthropic (m2), fallback2=google (m3)."""
    await gateway.provider("p1", "openai")
    await gateway.provider("p2", "anthropic")
    await gateway.provider("p3", "google")
    await gateway.model("m1", "p1", native_id="gpt-4o")
    await gateway.model("m2", "p2", native_id="claude-3-5-sonnet-20241022")
    await gateway.model("m3", "p3", native_id="gemini-1.5-pro")
    await gateway.route("m1", "m2", "m3", **route_kwargs)
