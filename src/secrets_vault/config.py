"""Credential Vault - Configuration."""

from dataclasses import dataclass
from enum import Enum


class CipherScheme(Enum):
    """Ciphertext formats the vault can recognise."""

    AES_GCM = "aes-256-gcm"          # base64(salt | iv | tag | ciphertext)
    LEGACY_AES_CBC = "aes-256-cbc"   # ivHex:cipherHex, read-only


@dataclass(frozen=True)
class VaultConfig:
    """Parameters of the authenticated, salted encryption scheme."""

    salt_length: int = 32
    iv_length: int = 16
    tag_length: int = 16
    key_length: int = 32
    pbkdf2_iterations: int = 100_000
    min_master_key_length: int = 32
    # Accept the legacy unauthenticated CBC format on decrypt.
    allow_legacy: bool = False

    def __post_init__(self):
        if self.pbkdf2_iterations < 1:
            raise ValueError("pbkdf2_iterations must be >= 1")
        if self.iv_length < 12:
            raise ValueError("iv_length must be >= 12")

    @property
    def header_length(self) -> int:
        return self.salt_length + self.iv_length + self.tag_length
