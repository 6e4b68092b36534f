"""SQLAlchemy ORM models for the AI gateway.

Tables:
- ai_providers: configured provider backends with encrypted API keys
- ai_models: models offered by each provider, pricing and call counters
- ai_routing_config: singleton primary/fallback routing configuration
- ai_usage_logs: append-only audit trail, one row per routed call
"""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from src.db.base import Base


def new_id() -> str:
    return uuid.uuid4().hex


class AIProvider(Base):
    """A third-party AI backend and its encrypted credential."""

    __tablename__ = "ai_providers"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False, index=True)
    api_endpoint = Column(String(500))
    encrypted_api_key = Column(Text, nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    models = relationship("AIModel", back_populates="provider", cascade="all, delete-orphan")


class AIModel(Base):
    """A provider-native model with per-million-token pricing."""

    __tablename__ = "ai_models"

    id = Column(String(32), primary_key=True, default=new_id)
    provider_id = Column(
        String(32), ForeignKey("ai_providers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    model_id = Column(String(200), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    input_price = Column(Float, nullable=False, default=0.0)
    output_price = Column(Float, nullable=False, default=0.0)
    max_tokens = Column(Integer, nullable=False, default=4096)
    context_window = Column(Integer, nullable=False, default=4096)
    is_active = Column(Boolean, nullable=False, default=True)
    is_manual = Column(Boolean, nullable=False, default=False)
    total_calls = Column(Integer, nullable=False, default=0)
    success_calls = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    provider = relationship("AIProvider", back_populates="models")

    __table_args__ = (
        UniqueConstraint("provider_id", "model_id", name="uq_provider_model"),
    )


class AIRoutingConfig(Base):
    """Primary / fallback chain. Only the first row is consulted."""

    __tablename__ = "ai_routing_config"

    id = Column(String(32), primary_key=True, default=new_id)
    primary_model_id = Column(String(32))
    fallback1_model_id = Column(String(32))
    fallback2_model_id = Column(String(32))
    enable_fallback = Column(Boolean, nullable=False, default=True)
    retry_attempts = Column(Integer, nullable=False, default=3)
    timeout_seconds = Column(Integer, nullable=False, default=30)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class AIUsageLog(Base):
    """One row per completed routing call (success or exhaustion)."""

    __tablename__ = "ai_usage_logs"

    id = Column(String(32), primary_key=True, default=new_id)
    provider_id = Column(String(32))
    model_id = Column(String(32), nullable=False)
    user_id = Column(String(100))
    tool_id = Column(String(100))
    prompt = Column(Text, nullable=False)
    response = Column(Text)
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)
    total_tokens = Column(Integer, nullable=False, default=0)
    cost = Column(Float, nullable=False, default=0.0)
    latency_ms = Column(Integer, nullable=False, default=0)
    status = Column(String(10), nullable=False)
    error_message = Column(Text)
    used_fallback = Column(Boolean, nullable=False, default=False)
    fallback_level = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_usage_model_created", "model_id", "created_at"),
        Index("ix_usage_created", "created_at"),
    )
