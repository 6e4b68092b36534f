"""Structured Logging & Call Tracing.

JSON logging with credential redaction, call-scoped context
(call_id / user_id / tool_id) and performance timing for the gateway.
"""

from src.logging_config.config import LogFormat, LoggingConfig, LogLevel
from src.logging_config.context import CallContext, generate_call_id
from src.logging_config.performance import PerformanceTimer, log_performance
from src.logging_config.setup import (
    SecretRedactingFilter,
    configure_logging,
    get_logger,
    redact_secrets,
)

__all__ = [
    # Config
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    # Context
    "CallContext",
    "generate_call_id",
    # Setup
    "configure_logging",
    "get_logger",
    "redact_secrets",
    "SecretRedactingFilter",
    # Timing
    "log_performance",
    "PerformanceTimer",
]
