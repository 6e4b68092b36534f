"""Routing Repository.

Storage seam for the routing components. ``SqlAlchemyRoutingRepository``
is the production implementation; ``InMemoryRoutingRepository`` keeps
everything in dicts for embedding and deterministic tests.
"""

import abc
import dataclasses
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.ai_routing.models import (
    ModelRecord,
    ProviderRecord,
    RoutingConfigRecord,
    UsageLogEntry,
    UsageStatus,
    UsageSummary,
    new_record_id,
)
from src.db.models import AIModel, AIProvider, AIRoutingConfig, AIUsageLog
from src.gateway_errors import ModelNotFoundError
from src.model_providers import DiscoveredModel

PROVIDER_FIELDS = [f.name for f in dataclasses.fields(ProviderRecord)]
MODEL_FIELDS = [f.name for f in dataclasses.fields(ModelRecord)]
CONFIG_FIELDS = [f.name for f in dataclasses.fields(RoutingConfigRecord)]
# Refreshed from the catalog on every discovery run.
CATALOG_FIELDS = ("name", "description", "input_price", "output_price", "max_tokens", "context_window")


class RoutingRepository(abc.ABC):
    """Persistence operations the routing layer depends on."""

    # ── Configuration ─────────────────────────────────────────────────

    @abc.abstractmethod
    async def get_routing_config(self) -> Optional[RoutingConfigRecord]:
        """Return the singleton routing config, or None if none exists."""

    @abc.abstractmethod
    async def save_routing_config(self, config: RoutingConfigRecord) -> RoutingConfigRecord:
        """Create or replace the singleton routing config."""

    # ── Providers & models ────────────────────────────────────────────

    @abc.abstractmethod
    async def get_provider(self, provider_id: str) -> Optional[ProviderRecord]: ...

    @abc.abstractmethod
    async def list_providers(self) -> list[ProviderRecord]: ...

    @abc.abstractmethod
    async def save_provider(self, provider: ProviderRecord) -> ProviderRecord: ...

    @abc.abstractmethod
    async def get_model(self, model_id: str) -> Optional[ModelRecord]: ...

    @abc.abstractmethod
    async def list_models(self, provider_id: Optional[str] = None) -> list[ModelRecord]: ...

    @abc.abstractmethod
    async def save_model(self, model: ModelRecord) -> ModelRecord:
        """Insert or update a model; call counters are never overwritten."""

    @abc.abstractmethod
    async def upsert_model(
        self, provider_id: str, discovered: DiscoveredModel
    ) -> tuple[ModelRecord, bool]:
        """Insert or refresh a model by (provider_id, model_id).

        Returns the stored record and whether it was newly created.
        """

    @abc.abstractmethod
    async def increment_model_counters(self, model_id: str, success: bool) -> None:
        """Atomically bump ``total_calls`` and, on success, ``success_calls``."""

    # ── Usage log ─────────────────────────────────────────────────────

    @abc.abstractmethod
    async def add_usage_log(self, entry: UsageLogEntry) -> None: ...

    @abc.abstractmethod
    async def list_usage_logs(
        self,
        limit: int = 100,
        model_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[UsageLogEntry]:
        """Most recent entries first."""

    @abc.abstractmethod
    async def usage_summary(
        self, since: datetime, model_id: Optional[str] = None
    ) -> UsageSummary: ...


def _summarize(entries: list[UsageLogEntry]) -> UsageSummary:
    summary = UsageSummary()
    for entry in entries:
        summary.total_requests += 1
        if entry.status == UsageStatus.SUCCESS:
            summary.success_count += 1
        else:
            summary.failed_count += 1
        if entry.used_fallback:
            summary.fallback_count += 1
        summary.input_tokens += entry.input_tokens
        summary.output_tokens += entry.output_tokens
        summary.total_tokens += entry.total_tokens
        summary.total_cost += entry.cost
    if entries:
        summary.avg_latency_ms = sum(e.latency_ms for e in entries) / len(entries)
    return summary


# ═══════════════════════════════════════════════════════════════════════
# In-memory
# ═══════════════════════════════════════════════════════════════════════


class InMemoryRoutingRepository(RoutingRepository):
    """Dict-backed repository.

    Counter updates never await between read and write, so they are
    atomic with respect to other coroutines on the same event loop.
    """

    def __init__(self):
        self.config: Optional[RoutingConfigRecord] = None
        self.providers: dict[str, ProviderRecord] = {}
        self.models: dict[str, ModelRecord] = {}
        self.usage_logs: list[UsageLogEntry] = []

    async def get_routing_config(self) -> Optional[RoutingConfigRecord]:
        return self.config

    async def save_routing_config(self, config: RoutingConfigRecord) -> RoutingConfigRecord:
        config_id = config.id or (self.config.id if self.config else None) or new_record_id()
        self.config = dataclasses.replace(config, id=config_id)
        return self.config

    async def get_provider(self, provider_id: str) -> Optional[ProviderRecord]:
        return self.providers.get(provider_id)

    async def list_providers(self) -> list[ProviderRecord]:
        return sorted(self.providers.values(), key=lambda p: (p.sort_order, p.name))

    async def save_provider(self, provider: ProviderRecord) -> ProviderRecord:
        self.providers[provider.id] = provider
        return provider

    async def get_model(self, model_id: str) -> Optional[ModelRecord]:
        return self.models.get(model_id)

    async def list_models(self, provider_id: Optional[str] = None) -> list[ModelRecord]:
        return [
            m for m in self.models.values()
            if provider_id is None or m.provider_id == provider_id
        ]

    async def save_model(self, model: ModelRecord) -> ModelRecord:
        existing = self.models.get(model.id)
        if existing is not None:
            model = dataclasses.replace(
                model,
                total_calls=existing.total_calls,
                success_calls=existing.success_calls,
            )
        self.models[model.id] = model
        return model

    async def upsert_model(
        self, provider_id: str, discovered: DiscoveredModel
    ) -> tuple[ModelRecord, bool]:
        for model in self.models.values():
            if model.provider_id == provider_id and model.model_id == discovered.model_id:
                refreshed = dataclasses.replace(
                    model, **{name: getattr(discovered, name) for name in CATALOG_FIELDS}
                )
                self.models[model.id] = refreshed
                return refreshed, False
        created = ModelRecord(
            id=new_record_id(),
            provider_id=provider_id,
            model_id=discovered.model_id,
            **{name: getattr(discovered, name) for name in CATALOG_FIELDS},
        )
        self.models[created.id] = created
        return created, True

    async def increment_model_counters(self, model_id: str, success: bool) -> None:
        model = self.models.get(model_id)
        if model is None:
            raise ModelNotFoundError(model_id)
        self.models[model_id] = dataclasses.replace(
            model,
            total_calls=model.total_calls + 1,
            success_calls=model.success_calls + (1 if success else 0),
        )

    async def add_usage_log(self, entry: UsageLogEntry) -> None:
        if entry.id is None:
            entry = dataclasses.replace(entry, id=new_record_id())
        self.usage_logs.append(entry)

    async def list_usage_logs(
        self,
        limit: int = 100,
        model_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[UsageLogEntry]:
        entries = [
            e for e in self.usage_logs
            if (model_id is None or e.model_id == model_id)
            and (since is None or e.created_at >= since)
        ]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries[:limit]

    async def usage_summary(
        self, since: datetime, model_id: Optional[str] = None
    ) -> UsageSummary:
        return _summarize(
            await self.list_usage_logs(limit=len(self.usage_logs), model_id=model_id, since=since)
        )


# ═══════════════════════════════════════════════════════════════════════
# SQLAlchemy
# ═══════════════════════════════════════════════════════════════════════


def _provider_record(row: AIProvider) -> ProviderRecord:
    return ProviderRecord(**{name: getattr(row, name) for name in PROVIDER_FIELDS})


def _model_record(row: AIModel) -> ModelRecord:
    return ModelRecord(**{name: getattr(row, name) for name in MODEL_FIELDS})


def _config_record(row: AIRoutingConfig) -> RoutingConfigRecord:
    return RoutingConfigRecord(**{name: getattr(row, name) for name in CONFIG_FIELDS})


def _usage_record(row: AIUsageLog) -> UsageLogEntry:
    return UsageLogEntry(
        id=row.id,
        provider_id=row.provider_id,
        model_id=row.model_id,
        user_id=row.user_id,
        tool_id=row.tool_id,
        prompt=row.prompt,
        response=row.response,
        input_tokens=row.input_tokens,
        output_tokens=row.output_tokens,
        total_tokens=row.total_tokens,
        cost=row.cost,
        latency_ms=row.latency_ms,
        status=UsageStatus(row.status),
        error_message=row.error_message,
        used_fallback=row.used_fallback,
        fallback_level=row.fallback_level,
        created_at=row.created_at,
    )


class SqlAlchemyRoutingRepository(RoutingRepository):
    """Repository backed by the ``src.db`` ORM models.

    Every operation runs in its own short session so that concurrent
    calls never share a transaction.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    # ── Configuration ─────────────────────────────────────────────────

    async def get_routing_config(self) -> Optional[RoutingConfigRecord]:
        async with self._session_factory() as session:
            row = await session.scalar(
                select(AIRoutingConfig).order_by(AIRoutingConfig.created_at).limit(1)
            )
            return _config_record(row) if row is not None else None

    async def save_routing_config(self, config: RoutingConfigRecord) -> RoutingConfigRecord:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.scalar(
                    select(AIRoutingConfig).order_by(AIRoutingConfig.created_at).limit(1)
                )
                if row is None:
                    row = AIRoutingConfig(id=config.id or new_record_id())
                    session.add(row)
                for name in CONFIG_FIELDS:
                    if name != "id":
                        setattr(row, name, getattr(config, name))
            return _config_record(row)

    # ── Providers & models ────────────────────────────────────────────

    async def get_provider(self, provider_id: str) -> Optional[ProviderRecord]:
        async with self._session_factory() as session:
            row = await session.get(AIProvider, provider_id)
            return _provider_record(row) if row is not None else None

    async def list_providers(self) -> list[ProviderRecord]:
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(AIProvider).order_by(AIProvider.sort_order, AIProvider.name)
            )
            return [_provider_record(row) for row in rows]

    async def save_provider(self, provider: ProviderRecord) -> ProviderRecord:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(AIProvider, provider.id)
                if row is None:
                    row = AIProvider(id=provider.id)
                    session.add(row)
                for name in PROVIDER_FIELDS:
                    if name != "id":
                        setattr(row, name, getattr(provider, name))
            return _provider_record(row)

    async def get_model(self, model_id: str) -> Optional[ModelRecord]:
        async with self._session_factory() as session:
            row = await session.get(AIModel, model_id)
            return _model_record(row) if row is not None else None

    async def list_models(self, provider_id: Optional[str] = None) -> list[ModelRecord]:
        stmt = select(AIModel).order_by(AIModel.name)
        if provider_id is not None:
            stmt = stmt.where(AIModel.provider_id == provider_id)
        async with self._session_factory() as session:
            return [_model_record(row) for row in await session.scalars(stmt)]

    async def save_model(self, model: ModelRecord) -> ModelRecord:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(AIModel, model.id)
                if row is None:
                    row = AIModel(id=model.id, total_calls=0, success_calls=0)
                    session.add(row)
                for name in MODEL_FIELDS:
                    if name not in ("id", "total_calls", "success_calls"):
                        setattr(row, name, getattr(model, name))
            return _model_record(row)

    async def upsert_model(
        self, provider_id: str, discovered: DiscoveredModel
    ) -> tuple[ModelRecord, bool]:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.scalar(
                    select(AIModel).where(
                        AIModel.provider_id == provider_id,
                        AIModel.model_id == discovered.model_id,
                    )
                )
                created = row is None
                if created:
                    row = AIModel(
                        id=new_record_id(),
                        provider_id=provider_id,
                        model_id=discovered.model_id,
                        is_active=True,
                        is_manual=False,
                        total_calls=0,
                        success_calls=0,
                    )
                    session.add(row)
                for name in CATALOG_FIELDS:
                    setattr(row, name, getattr(discovered, name))
            return _model_record(row), created

    async def increment_model_counters(self, model_id: str, success: bool) -> None:
        values = {"total_calls": AIModel.total_calls + 1}
        if success:
            values["success_calls"] = AIModel.success_calls + 1
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(AIModel)
                    .where(AIModel.id == model_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise ModelNotFoundError(model_id)

    # ── Usage log ─────────────────────────────────────────────────────

    async def add_usage_log(self, entry: UsageLogEntry) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    AIUsageLog(
                        id=entry.id or new_record_id(),
                        provider_id=entry.provider_id,
                        model_id=entry.model_id,
                        user_id=entry.user_id,
                        tool_id=entry.tool_id,
                        prompt=entry.prompt,
                        response=entry.response,
                        input_tokens=entry.input_tokens,
                        output_tokens=entry.output_tokens,
                        total_tokens=entry.total_tokens,
                        cost=entry.cost,
                        latency_ms=entry.latency_ms,
                        status=entry.status.value,
                        error_message=entry.error_message,
                        used_fallback=entry.used_fallback,
                        fallback_level=entry.fallback_level,
                        created_at=entry.created_at,
                    )
                )

    async def list_usage_logs(
        self,
        limit: int = 100,
        model_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[UsageLogEntry]:
        stmt = select(AIUsageLog).order_by(AIUsageLog.created_at.desc()).limit(limit)
        if model_id is not None:
            stmt = stmt.where(AIUsageLog.model_id == model_id)
        if since is not None:
            stmt = stmt.where(AIUsageLog.created_at >= since)
        async with self._session_factory() as session:
            return [_usage_record(row) for row in await session.scalars(stmt)]

    async def usage_summary(
        self, since: datetime, model_id: Optional[str] = None
    ) -> UsageSummary:
        stmt = select(
            func.count(AIUsageLog.id),
            func.coalesce(
                func.sum(case((AIUsageLog.status == UsageStatus.SUCCESS.value, 1), else_=0)), 0
            ),
            func.coalesce(func.sum(case((AIUsageLog.fallback_level > 0, 1), else_=0)), 0),
            func.coalesce(func.sum(AIUsageLog.input_tokens), 0),
            func.coalesce(func.sum(AIUsageLog.output_tokens), 0),
            func.coalesce(func.sum(AIUsageLog.total_tokens), 0),
            func.coalesce(func.sum(AIUsageLog.cost), 0.0),
            func.coalesce(func.avg(AIUsageLog.latency_ms), 0.0),
        ).where(AIUsageLog.created_at >= since)
        if model_id is not None:
            stmt = stmt.where(AIUsageLog.model_id == model_id)

        async with self._session_factory() as session:
            row = (await session.execute(stmt)).one()

        total, successes, fallbacks, tokens_in, tokens_out, tokens, cost, latency = row
        return UsageSummary(
            total_requests=int(total),
            success_count=int(successes),
            failed_count=int(total) - int(successes),
            fallback_count=int(fallbacks),
            input_tokens=int(tokens_in),
            output_tokens=int(tokens_out),
            total_tokens=int(tokens),
            total_cost=float(cost),
            avg_latency_ms=float(latency),
        )
