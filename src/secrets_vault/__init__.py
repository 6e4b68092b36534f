"""Credential Vault.

Authenticated, salted encryption of provider API keys at rest.
"""

from .config import (
    CipherScheme,
    VaultConfig,
)
from .vault import (
    CredentialVault,
)

__all__ = [
    # Config
    "CipherScheme",
    "VaultConfig",
    # Vault
    "CredentialVault",
]
