"""Logging Setup.

Wires the root logger for the gateway: JSON lines in production,
colored single lines on a terminal. Every record passes through a
redaction filter first, because upstream URLs and error bodies can
carry provider credentials.
"""

import json
import logging
import os
import re
import sys
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from src.logging_config.config import DEFAULT_LOGGING_CONFIG, LogFormat, LoggingConfig, LogLevel
from src.logging_config.context import get_context_dict

# Record attributes copied into JSON output when passed via ``extra=``.
EXTRA_FIELDS = (
    "duration_ms",
    "model_id",
    "provider",
    "fallback_level",
    "attempt",
    "status_code",
    "extra_data",
)

REDACTED = "[REDACTED]"

SECRET_PATTERNS = [
    # Authorization: Bearer <token>
    (re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+", re.IGNORECASE), r"\1" + REDACTED),
    # Google-style ?key=... query parameters
    (re.compile(r"([?&]key=)[^&\s\"']+"), r"\1" + REDACTED),
    # x-api-key header values
    (re.compile(r"(x-api-key['\"]?\s*[:=]\s*['\"]?)[^\s'\",}]+", re.IGNORECASE), r"\1" + REDACTED),
    # OpenAI / Anthropic secret key shapes
    (re.compile(r"\bsk-[A-Za-z0-9_\-]{8,}"), REDACTED),
]


def redact_secrets(text: str) -> str:
    """Mask anything that looks like a provider credential."""
    for pattern, replacement in SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class SecretRedactingFilter(logging.Filter):
    """Rewrites each record's message with credentials masked.

    The message is rendered once here so formatters downstream never
    see the raw arguments.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        rendered = record.getMessage()
        cleaned = redact_secrets(rendered)
        if cleaned != rendered:
            record.msg = cleaned
            record.args = None
        return True


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    Fields: timestamp, level, logger, message, service; then caller
    info, the bound call context, exception details and any of
    ``EXTRA_FIELDS`` set on the record.
    """

    def __init__(self, service_name: str = "ai-gateway", include_caller: bool = True):
        super().__init__()
        self.service_name = service_name
        self.include_caller = include_caller

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }
        if self.include_caller:
            payload.update(module=record.module, function=record.funcName, line=record.lineno)

        payload.update(get_context_dict())

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": redact_secrets(str(exc_value)),
                "traceback": redact_secrets(self.formatException(record.exc_info)),
            }

        payload.update(
            {key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)}
        )
        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored console formatter for local runs of the CLI."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        clock = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        fields = {**get_context_dict()}
        for key in ("model_id", "fallback_level"):
            if hasattr(record, key):
                fields[key] = getattr(record, key)
        suffix = f" [{', '.join(f'{k}={v}' for k, v in fields.items())}]" if fields else ""

        line = (
            f"{color}{clock} {record.levelname:8s}{self.RESET} "
            f"{record.name}: {record.getMessage()}{suffix}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + redact_secrets(self.formatException(record.exc_info))
        return line


def _apply_env_overrides(config: LoggingConfig) -> LoggingConfig:
    env_level = os.environ.get("AIGW_LOG_LEVEL", "").upper()
    if env_level in LogLevel.__members__:
        config = replace(config, level=LogLevel(env_level))

    env_format = os.environ.get("AIGW_LOG_FORMAT", "").lower()
    if env_format in {f.value for f in LogFormat}:
        config = replace(config, format=LogFormat(env_format))
    return config


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure the root logger for the gateway.

    Call once at startup. ``AIGW_LOG_LEVEL`` and ``AIGW_LOG_FORMAT``
    override the corresponding fields of ``config``.
    """
    config = _apply_env_overrides(config or DEFAULT_LOGGING_CONFIG)

    if config.format == LogFormat.JSON:
        formatter: logging.Formatter = StructuredFormatter(
            service_name=config.service_name,
            include_caller=config.include_caller,
        )
    else:
        formatter = ConsoleFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(SecretRedactingFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, config.level.value))

    for noisy in config.quiet_loggers:
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
