"""Database package for the AI gateway."""

from src.db.base import Base
from src.db.engine import (
    AsyncSessionLocal,
    build_async_engine,
    dispose_engine,
    get_async_engine,
    get_async_session_factory,
    init_db,
)
from src.db.models import (
    AIModel,
    AIProvider,
    AIRoutingConfig,
    AIUsageLog,
)

__all__ = [
    "Base",
    "build_async_engine",
    "get_async_engine",
    "get_async_session_factory",
    "init_db",
    "dispose_engine",
    "AsyncSessionLocal",
    "AIProvider",
    "AIModel",
    "AIRoutingConfig",
    "AIUsageLog",
]
