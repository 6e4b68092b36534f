"""Gateway Error Taxonomy.

Typed exceptions and error codes shared by the credential vault,
provider adapters and the routing orchestrator.
"""

from src.gateway_errors.config import (
    ERROR_SEVERITY_MAP,
    ErrorCode,
    ErrorSeverity,
)
from src.gateway_errors.exceptions import (
    AllModelsFailedError,
    AttemptError,
    ConfigurationMissingError,
    DecryptionError,
    GatewayError,
    InvalidConfigurationError,
    ModelInactiveError,
    ModelNotFoundError,
    ProviderAPIError,
    ProviderInactiveError,
    ProviderNotFoundError,
    UnsupportedProviderError,
)

__all__ = [
    # Config
    "ErrorCode",
    "ErrorSeverity",
    "ERROR_SEVERITY_MAP",
    # Exceptions
    "GatewayError",
    "ConfigurationMissingError",
    "InvalidConfigurationError",
    "AttemptError",
    "ModelNotFoundError",
    "ModelInactiveError",
    "ProviderNotFoundError",
    "ProviderInactiveError",
    "UnsupportedProviderError",
    "DecryptionError",
    "ProviderAPIError",
    "AllModelsFailedError",
]
