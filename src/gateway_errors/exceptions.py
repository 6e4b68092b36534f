"""Custom Exception Hierarchy.

Typed exceptions for every failure the gateway distinguishes. The
orchestrator treats all ``AttemptError`` subclasses as recoverable
(advance to the next model in the chain); everything else is fatal.
"""

from typing import Any, Dict, List, Optional

from src.gateway_errors.config import ERROR_SEVERITY_MAP, ErrorCode, ErrorSeverity


class GatewayError(Exception):
    """Base exception for all AI gateway errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or []

    @property
    def severity(self) -> ErrorSeverity:
        return ERROR_SEVERITY_MAP.get(self.error_code, ErrorSeverity.CRITICAL)


class ConfigurationMissingError(GatewayError):
    """Raised when no routing config exists or it has no primary model."""

    def __init__(
        self,
        message: str = "AI configuration not found. Please configure AI models first.",
    ):
        super().__init__(message, ErrorCode.CONFIGURATION_MISSING)


class InvalidConfigurationError(GatewayError):
    """Raised when a management write would store an invalid configuration."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = [{"field": field, "issue": message}] if field else []
        super().__init__(message, ErrorCode.INVALID_CONFIGURATION, details)
        self.field = field


class AttemptError(GatewayError):
    """A failure scoped to a single model attempt."""


class ModelNotFoundError(AttemptError):
    def __init__(self, model_id: str):
        super().__init__(
            f"Model {model_id} not found",
            ErrorCode.MODEL_NOT_FOUND,
            [{"resource_type": "model", "resource_id": model_id}],
        )
        self.model_id = model_id


class ModelInactiveError(AttemptError):
    def __init__(self, model_id: str):
        super().__init__(f"Model {model_id} is inactive", ErrorCode.MODEL_INACTIVE)
        self.model_id = model_id


class ProviderNotFoundError(AttemptError):
    def __init__(self, provider_id: str):
        super().__init__(
            f"Provider {provider_id} not found",
            ErrorCode.PROVIDER_NOT_FOUND,
            [{"resource_type": "provider", "resource_id": provider_id}],
        )
        self.provider_id = provider_id


class ProviderInactiveError(AttemptError):
    def __init__(self, provider_id: str, provider_name: str = ""):
        label = provider_name or provider_id
        super().__init__(f"Provider {label} is inactive", ErrorCode.PROVIDER_INACTIVE)
        self.provider_id = provider_id


class UnsupportedProviderError(AttemptError):
    def __init__(self, provider_type: str):
        super().__init__(
            f"Unsupported provider type: {provider_type}",
            ErrorCode.UNSUPPORTED_PROVIDER,
        )
        self.provider_type = provider_type


class DecryptionError(AttemptError):
    """Raised when a stored credential is malformed or fails authentication."""

    def __init__(self, message: str = "Failed to decrypt credential"):
        super().__init__(message, ErrorCode.DECRYPTION_FAILED)


# Statuses worth retrying against the same model before failing over.
RETRYABLE_STATUS_CODES = frozenset({408, 409, 429})


class ProviderAPIError(AttemptError):
    """Raised on any non-success upstream response or transport failure.

    ``status_code`` is ``None`` when no HTTP response was received
    (connection errors, timeouts).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        provider: str = "",
        retryable: Optional[bool] = None,
    ):
        super().__init__(
            message,
            ErrorCode.PROVIDER_API_ERROR,
            [{"provider": provider, "status_code": status_code}],
        )
        self.status_code = status_code
        self.body = body
        self.provider = provider
        self._retryable = retryable

    @property
    def retryable(self) -> bool:
        if self._retryable is not None:
            return self._retryable
        if self.status_code is None:
            return True
        return self.status_code in RETRYABLE_STATUS_CODES or self.status_code >= 500


class AllModelsFailedError(GatewayError):
    """Raised after the final state of the fallback chain has failed."""

    def __init__(self, attempts: Optional[List[Dict[str, Any]]] = None):
        attempts = attempts or []
        super().__init__("All AI models failed", ErrorCode.ALL_MODELS_FAILED, attempts)
        self.attempts = attempts
