"""Configuration types for the provider adapter set."""

import enum
from dataclasses import dataclass
from typing import Any, Optional


class ProviderType(enum.Enum):
    """Supported provider families."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    CUSTOM = "custom"       # any OpenAI-compatible endpoint


DEFAULT_ENDPOINTS: dict[ProviderType, Optional[str]] = {
    ProviderType.OPENAI: "https://api.openai.com/v1",
    ProviderType.ANTHROPIC: "https://api.anthropic.com/v1",
    ProviderType.GOOGLE: "https://generativelanguage.googleapis.com/v1",
    ProviderType.CUSTOM: None,
}

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class CallOptions:
    """Generation parameters shared by every adapter."""

    temperature: float = 0.7
    max_tokens: int = 1000
    stream: bool = False

    def __post_init__(self):
        if self.stream:
            raise ValueError("Streaming responses are not supported")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")


@dataclass
class NormalizedReply:
    """Provider-agnostic reply extracted from a native response."""

    text: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    raw_response: Any = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens
