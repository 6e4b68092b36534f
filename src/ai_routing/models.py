"""Data records exchanged between the routing components.

These are plain dataclasses decoupled from the ORM so that the
orchestrator can run against any ``RoutingRepository``.
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from src.model_providers import CallOptions


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the ``DateTime`` columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_record_id() -> str:
    return uuid.uuid4().hex


class UsageStatus(enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


FALLBACK_LEVELS = (0, 1, 2)


@dataclass(frozen=True)
class ProviderRecord:
    id: str
    name: str
    type: str
    encrypted_api_key: str
    api_endpoint: Optional[str] = None
    is_active: bool = True
    description: Optional[str] = None
    sort_order: int = 0


@dataclass(frozen=True)
class ModelRecord:
    id: str
    provider_id: str
    model_id: str
    name: str
    input_price: float = 0.0
    output_price: float = 0.0
    max_tokens: int = 4096
    context_window: int = 4096
    is_active: bool = True
    is_manual: bool = False
    description: Optional[str] = None
    total_calls: int = 0
    success_calls: int = 0


@dataclass(frozen=True)
class RoutingConfigRecord:
    """Primary / fallback chain plus per-attempt limits."""

    primary_model_id: Optional[str] = None
    fallback1_model_id: Optional[str] = None
    fallback2_model_id: Optional[str] = None
    enable_fallback: bool = True
    retry_attempts: int = 3
    timeout_seconds: int = 30
    id: Optional[str] = None

    def chain(self) -> list[tuple[int, str]]:
        """Ordered ``(fallback_level, model_id)`` pairs to attempt.

        Fallback-2 is only reachable through fallback-1, and neither is
        used unless fallback is enabled.
        """
        if not self.primary_model_id:
            return []
        steps = [(0, self.primary_model_id)]
        if self.enable_fallback and self.fallback1_model_id:
            steps.append((1, self.fallback1_model_id))
            if self.fallback2_model_id:
                steps.append((2, self.fallback2_model_id))
        return steps


@dataclass(frozen=True)
class UsageLogEntry:
    """Immutable audit record written once per routed call."""

    model_id: str
    prompt: str
    status: UsageStatus
    provider_id: Optional[str] = None
    user_id: Optional[str] = None
    tool_id: Optional[str] = None
    response: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0
    latency_ms: int = 0
    error_message: Optional[str] = None
    used_fallback: bool = False
    fallback_level: int = 0
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[str] = None

    def __post_init__(self):
        if self.fallback_level not in FALLBACK_LEVELS:
            raise ValueError(f"fallback_level must be one of {FALLBACK_LEVELS}")
        if self.used_fallback != (self.fallback_level > 0):
            raise ValueError("used_fallback must be true iff fallback_level > 0")


@dataclass(frozen=True)
class AICallOptions:
    """Caller-facing options for ``call_ai``."""

    temperature: float = 0.7
    max_tokens: int = 1000
    stream: bool = False
    tool_id: Optional[str] = None
    user_id: Optional[str] = None

    def to_call_options(self) -> CallOptions:
        return CallOptions(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            stream=self.stream,
        )


@dataclass
class AICallResult:
    success: bool
    response: str
    model_used: str
    provider_id: str
    used_fallback: bool
    fallback_level: int
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost: float
    latency_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "response": self.response,
            "model_used": self.model_used,
            "provider_id": self.provider_id,
            "used_fallback": self.used_fallback,
            "fallback_level": self.fallback_level,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "cost": self.cost,
            "latency_ms": self.latency_ms,
        }


@dataclass
class UsageSummary:
    """Aggregate of usage log entries over a window."""

    total_requests: int = 0
    success_count: int = 0
    failed_count: int = 0
    fallback_count: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    avg_latency_ms: float = 0.0

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.success_count / self.total_requests

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "success_count": self.success_count,
            "failed_count": self.failed_count,
            "fallback_count": self.fallback_count,
            "success_rate": round(self.success_rate, 4),
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "total_cost": self.total_cost,
            "avg_latency_ms": round(self.avg_latency_ms, 1),
        }


@dataclass
class SyncReport:
    """Outcome of a model discovery run for one provider."""

    provider_id: str
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.created) + len(self.updated)
