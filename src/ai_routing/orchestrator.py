"""Failover Orchestrator.

Entry point for routed AI calls. Walks the configured chain
primary -> fallback-1 -> fallback-2 until one model answers, meters the
winning call and writes exactly one audit record for the outcome.

State machine::

    TryPrimary   --ok--> Done
                 --fail--> TryFallback1 (fallback enabled and set) | Exhausted
    TryFallback1 --ok--> Done
                 --fail--> TryFallback2 (set) | Exhausted
    TryFallback2 --ok--> Done
                 --fail--> Exhausted
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from src.ai_routing.accounting import UsageAccountant
from src.ai_routing.audit import AuditLogger
from src.ai_routing.models import (
    AICallOptions,
    AICallResult,
    RoutingConfigRecord,
    UsageLogEntry,
    UsageStatus,
)
from src.ai_routing.registry import ModelRegistry, ResolvedModel
from src.ai_routing.repository import RoutingRepository
from src.gateway_errors import (
    AllModelsFailedError,
    AttemptError,
    ConfigurationMissingError,
    ProviderAPIError,
)
from src.logging_config import CallContext, PerformanceTimer
from src.model_providers import CallOptions, NormalizedReply, ProviderRegistry
from src.secrets_vault import CredentialVault

logger = logging.getLogger(__name__)

TEST_PROMPT = "Hello, this is a test message."
TEST_MAX_TOKENS = 10


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class FailoverOrchestrator:
    """Routes a prompt through the configured fallback chain.

    Collaborators are injected; only ``repository`` and ``vault`` are
    required; the registry, accountant and audit logger default to
    implementations over the same repository.

    Per-attempt limits come from the routing config: every dispatch is
    bounded by ``timeout_seconds`` and a model is tried up to
    ``retry_attempts`` times (transient failures only, exponential
    backoff) before the chain advances.
    """

    def __init__(
        self,
        repository: RoutingRepository,
        vault: CredentialVault,
        providers: Optional[ProviderRegistry] = None,
        *,
        registry: Optional[ModelRegistry] = None,
        accountant: Optional[UsageAccountant] = None,
        audit: Optional[AuditLogger] = None,
        retry_backoff_seconds: float = 0.5,
        max_retry_backoff_seconds: float = 8.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.repository = repository
        self.vault = vault
        self.registry = registry or ModelRegistry(repository, providers)
        self.accountant = accountant or UsageAccountant(repository)
        self.audit = audit or AuditLogger(repository)
        self.retry_backoff_seconds = retry_backoff_seconds
        self.max_retry_backoff_seconds = max_retry_backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        repository: RoutingRepository,
        settings,
        providers: Optional[ProviderRegistry] = None,
    ) -> "FailoverOrchestrator":
        return cls(
            repository,
            CredentialVault.from_settings(settings),
            providers,
            retry_backoff_seconds=settings.retry_backoff_seconds,
            max_retry_backoff_seconds=settings.max_retry_backoff_seconds,
        )

    # ── Public API ────────────────────────────────────────────────────

    async def call_ai(
        self, prompt: str, options: Optional[AICallOptions] = None
    ) -> AICallResult:
        """Send ``prompt`` to the first model in the chain that succeeds.

        Raises:
            ConfigurationMissingError: no routing config or no primary
                model; nothing is attempted or audited.
            AllModelsFailedError: every model in the chain failed; one
                failed usage record is written against the primary model.
        """
        options = options or AICallOptions()
        call_options = options.to_call_options()
        started = time.perf_counter()

        config = await self.repository.get_routing_config()
        if config is None or not config.primary_model_id:
            raise ConfigurationMissingError()

        with CallContext(user_id=options.user_id or "", tool_id=options.tool_id or ""):
            attempts: list[dict] = []
            primary_provider_id: Optional[str] = None

            for level, model_id in config.chain():
                try:
                    resolved = await self.registry.resolve(model_id)
                    if level == 0:
                        primary_provider_id = resolved.provider.id
                    reply, cost = await self._execute(resolved, prompt, call_options, config)
                except AttemptError as exc:
                    attempts.append({
                        "fallback_level": level,
                        "model_id": model_id,
                        "error_code": exc.error_code.value,
                        "message": exc.message,
                    })
                    logger.warning(
                        f"Model {model_id} failed at fallback level {level}: {exc.message}",
                        extra={"model_id": model_id, "fallback_level": level},
                    )
                    continue

                result = AICallResult(
                    success=True,
                    response=reply.text,
                    model_used=resolved.model.id,
                    provider_id=resolved.provider.id,
                    used_fallback=level > 0,
                    fallback_level=level,
                    input_tokens=reply.input_tokens,
                    output_tokens=reply.output_tokens,
                    total_tokens=reply.total_tokens,
                    cost=cost,
                    latency_ms=_elapsed_ms(started),
                )
                await self.audit.log(UsageLogEntry(
                    provider_id=result.provider_id,
                    model_id=result.model_used,
                    user_id=options.user_id,
                    tool_id=options.tool_id,
                    prompt=prompt,
                    response=result.response,
                    input_tokens=result.input_tokens,
                    output_tokens=result.output_tokens,
                    total_tokens=result.total_tokens,
                    cost=result.cost,
                    latency_ms=result.latency_ms,
                    status=UsageStatus.SUCCESS,
                    used_fallback=result.used_fallback,
                    fallback_level=result.fallback_level,
                ))
                logger.info(
                    f"AI call served by {result.model_used} at fallback level {level}",
                    extra={
                        "model_id": result.model_used,
                        "fallback_level": level,
                        "duration_ms": result.latency_ms,
                    },
                )
                return result

            latency_ms = _elapsed_ms(started)
            await self.audit.log(UsageLogEntry(
                provider_id=primary_provider_id,
                model_id=config.primary_model_id,
                user_id=options.user_id,
                tool_id=options.tool_id,
                prompt=prompt,
                latency_ms=latency_ms,
                status=UsageStatus.FAILED,
                error_message=self._describe_failures(attempts),
                used_fallback=False,
                fallback_level=0,
            ))
            logger.error(
                f"All AI models failed after {len(attempts)} attempt(s)",
                extra={"model_id": config.primary_model_id, "duration_ms": latency_ms},
            )
            raise AllModelsFailedError(attempts)

    async def test_model(self, model_id: str) -> bool:
        """Check connectivity to a single model with a tiny prompt.

        Unlike ``call_ai``, a check writes no usage log and leaves the
        model's ``total_calls`` and ``success_calls`` untouched, so
        connectivity checks never show up in usage reports.
        """
        try:
            resolved = await self.registry.resolve(model_id)
            api_key = await asyncio.to_thread(
                self.vault.decrypt, resolved.provider.encrypted_api_key
            )
            await resolved.adapter.call(
                api_key,
                resolved.model.model_id,
                TEST_PROMPT,
                resolved.provider.api_endpoint,
                CallOptions(max_tokens=TEST_MAX_TOKENS),
            )
        except AttemptError as exc:
            logger.info(
                f"Model test failed for {model_id}: {exc.message}",
                extra={"model_id": model_id},
            )
            return False
        return True

    # ── Attempt execution ─────────────────────────────────────────────

    async def _execute(
        self,
        resolved: ResolvedModel,
        prompt: str,
        options: CallOptions,
        config: RoutingConfigRecord,
    ) -> tuple[NormalizedReply, float]:
        api_key = await asyncio.to_thread(
            self.vault.decrypt, resolved.provider.encrypted_api_key
        )
        try:
            reply = await self._dispatch_with_retry(resolved, api_key, prompt, options, config)
        except ProviderAPIError:
            await self.accountant.record_attempt(resolved.model.id, success=False)
            raise
        await self.accountant.record_attempt(resolved.model.id, success=True)
        cost = self.accountant.account(resolved.model, reply.input_tokens, reply.output_tokens)
        return reply, cost

    def backoff_delay(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (1-based), doubling each time."""
        delay = self.retry_backoff_seconds * (2 ** (retry_number - 1))
        return min(delay, self.max_retry_backoff_seconds)

    async def _dispatch_with_retry(
        self,
        resolved: ResolvedModel,
        api_key: str,
        prompt: str,
        options: CallOptions,
        config: RoutingConfigRecord,
    ) -> NormalizedReply:
        max_attempts = max(1, config.retry_attempts)
        attempt = 1
        while True:
            try:
                return await self._dispatch_once(
                    resolved, api_key, prompt, options, config.timeout_seconds, attempt
                )
            except ProviderAPIError as exc:
                if attempt >= max_attempts or not exc.retryable:
                    raise
                logger.info(
                    f"Retrying {resolved.model.id} after transient failure: {exc.message}",
                    extra={
                        "model_id": resolved.model.id,
                        "attempt": attempt,
                        "status_code": exc.status_code,
                    },
                )
            await self._sleep(self.backoff_delay(attempt))
            attempt += 1

    async def _dispatch_once(
        self,
        resolved: ResolvedModel,
        api_key: str,
        prompt: str,
        options: CallOptions,
        timeout_seconds: float,
        attempt: int,
    ) -> NormalizedReply:
        provider = resolved.provider
        timer = PerformanceTimer(
            f"{provider.type} call",
            extra={"model_id": resolved.model.id, "provider": provider.type, "attempt": attempt},
            logger_=logger,
        )
        with timer:
            try:
                return await asyncio.wait_for(
                    resolved.adapter.call(
                        api_key,
                        resolved.model.model_id,
                        prompt,
                        provider.api_endpoint,
                        options,
                        timeout=timeout_seconds,
                    ),
                    timeout=timeout_seconds,
                )
            except asyncio.TimeoutError as exc:
                raise ProviderAPIError(
                    f"{provider.type} call timed out after {timeout_seconds}s",
                    provider=provider.type,
                ) from exc

    @staticmethod
    def _describe_failures(attempts: list[dict]) -> str:
        lines = ["All AI models failed"]
        for item in attempts:
            lines.append(
                f"[level {item['fallback_level']}] {item['model_id']}: {item['message']}"
            )
        return "\n".join(lines)
