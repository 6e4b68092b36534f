"""AI Model Routing & Failover.

Routes prompts through an administrator-configured chain of models
(primary -> fallback-1 -> fallback-2) across heterogeneous providers,
with encrypted credentials, cost metering and an audit trail.
"""

from src.ai_routing.models import (
    AICallOptions,
    AICallResult,
    ModelRecord,
    ProviderRecord,
    RoutingConfigRecord,
    SyncReport,
    UsageLogEntry,
    UsageStatus,
    UsageSummary,
)
from src.ai_routing.repository import (
    InMemoryRoutingRepository,
    RoutingRepository,
    SqlAlchemyRoutingRepository,
)
from src.ai_routing.registry import ModelRegistry, ResolvedModel
from src.ai_routing.accounting import UsageAccountant, compute_cost
from src.ai_routing.audit import AuditLogger
from src.ai_routing.orchestrator import FailoverOrchestrator
from src.ai_routing.management import HIDDEN_KEY, RoutingAdmin, summarize_usage

__all__ = [
    # Models
    "AICallOptions",
    "AICallResult",
    "ModelRecord",
    "ProviderRecord",
    "RoutingConfigRecord",
    "SyncReport",
    "UsageLogEntry",
    "UsageStatus",
    "UsageSummary",
    # Repository
    "RoutingRepository",
    "InMemoryRoutingRepository",
    "SqlAlchemyRoutingRepository",
    # Components
    "ModelRegistry",
    "ResolvedModel",
    "UsageAccountant",
    "compute_cost",
    "AuditLogger",
    "FailoverOrchestrator",
    # Management
    "RoutingAdmin",
    "HIDDEN_KEY",
    "summarize_usage",
]
