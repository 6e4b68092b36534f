"""Gateway Error Configuration.

Defines error codes and severity levels shared by every component
of the AI gateway.
"""

from enum import Enum
from typing import Dict


class ErrorCode(Enum):
    """Standardized error codes for gateway failures."""

    # Configuration
    CONFIGURATION_MISSING = "CONFIGURATION_MISSING"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"

    # Model / provider resolution
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    MODEL_INACTIVE = "MODEL_INACTIVE"
    PROVIDER_NOT_FOUND = "PROVIDER_NOT_FOUND"
    PROVIDER_INACTIVE = "PROVIDER_INACTIVE"
    UNSUPPORTED_PROVIDER = "UNSUPPORTED_PROVIDER"

    # Credentials
    DECRYPTION_FAILED = "DECRYPTION_FAILED"

    # Upstream
    PROVIDER_API_ERROR = "PROVIDER_API_ERROR"
    ALL_MODELS_FAILED = "ALL_MODELS_FAILED"

    # Generic
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorSeverity(Enum):
    """Severity levels for error logging."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Map error codes to severity
ERROR_SEVERITY_MAP: Dict[ErrorCode, ErrorSeverity] = {
    ErrorCode.CONFIGURATION_MISSING: ErrorSeverity.CRITICAL,
    ErrorCode.INVALID_CONFIGURATION: ErrorSeverity.HIGH,
    ErrorCode.MODEL_NOT_FOUND: ErrorSeverity.MEDIUM,
    ErrorCode.MODEL_INACTIVE: ErrorSeverity.LOW,
    ErrorCode.PROVIDER_NOT_FOUND: ErrorSeverity.MEDIUM,
    ErrorCode.PROVIDER_INACTIVE: ErrorSeverity.LOW,
    ErrorCode.UNSUPPORTED_PROVIDER: ErrorSeverity.HIGH,
    ErrorCode.DECRYPTION_FAILED: ErrorSeverity.HIGH,
    ErrorCode.PROVIDER_API_ERROR: ErrorSeverity.MEDIUM,
    ErrorCode.ALL_MODELS_FAILED: ErrorSeverity.CRITICAL,
    ErrorCode.INTERNAL_ERROR: ErrorSeverity.CRITICAL,
}
