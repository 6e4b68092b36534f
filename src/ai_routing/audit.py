"""Audit Logger: persists one usage record per routed call."""

import logging

from src.ai_routing.models import UsageLogEntry
from src.ai_routing.repository import RoutingRepository

logger = logging.getLogger(__name__)


class AuditLogger:
    """Writes usage log entries without ever failing the caller.

    A persistence failure is logged with its traceback and swallowed so
    that the outcome of the AI call is reported unchanged.
    """

    def __init__(self, repository: RoutingRepository):
        self.repository = repository

    async def log(self, entry: UsageLogEntry) -> bool:
        """Persist ``entry``. Returns False if it could not be stored."""
        try:
            await self.repository.add_usage_log(entry)
        except Exception:
            logger.exception(
                "Failed to persist AI usage log",
                extra={"model_id": entry.model_id, "fallback_level": entry.fallback_level},
            )
            return False
        return True
