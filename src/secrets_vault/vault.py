"""Credential Vault - Encryption Core.

Provider API keys (and any other secret the gateway stores) are
encrypted with AES-256-GCM under a key derived per call with
PBKDF2-HMAC-SHA256 over a fresh random salt. The stored form is a
single base64 blob laid out as ``salt | iv | tag | ciphertext``.

The older ``ivHex:cipherHex`` AES-256-CBC format (key = SHA-256 of the
master secret, no authentication) can still be read when the vault is
built with ``allow_legacy=True`` so that existing rows can be migrated
with :meth:`CredentialVault.reencrypt`.
"""

import base64
import binascii
import hashlib
import logging
import os
import re
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from src.gateway_errors import DecryptionError, InvalidConfigurationError
from src.secrets_vault.config import CipherScheme, VaultConfig

logger = logging.getLogger(__name__)

_LEGACY_PATTERN = re.compile(r"^[0-9a-fA-F]{32}:[0-9a-fA-F]+$")


class CredentialVault:
    """Symmetric encryption of provider secrets keyed by a master secret.

    The master secret is supplied out-of-band (``AIGW_ENCRYPTION_KEY``)
    and never stored alongside the ciphertexts.
    """

    def __init__(self, master_key: str, config: Optional[VaultConfig] = None):
        self.config = config or VaultConfig()
        if not master_key:
            raise InvalidConfigurationError(
                "Encryption key is not set", field="encryption_key"
            )
        if len(master_key) < self.config.min_master_key_length:
            raise InvalidConfigurationError(
                f"Encryption key must be at least "
                f"{self.config.min_master_key_length} characters long",
                field="encryption_key",
            )
        self._master_key = master_key.encode("utf-8")

    @classmethod
    def from_settings(cls, settings) -> "CredentialVault":
        return cls(
            settings.encryption_key,
            VaultConfig(
                pbkdf2_iterations=settings.pbkdf2_iterations,
                allow_legacy=settings.allow_legacy_ciphertext,
            ),
        )

    # ── Key derivation ────────────────────────────────────────────────

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self.config.key_length,
            salt=salt,
            iterations=self.config.pbkdf2_iterations,
        )
        return kdf.derive(self._master_key)

    def _legacy_key(self) -> bytes:
        return hashlib.sha256(self._master_key).digest()

    # ── Public API ────────────────────────────────────────────────────

    def encrypt(self, plaintext: str) -> str:
        """Encrypt ``plaintext``; every call uses a fresh salt and IV."""
        salt = os.urandom(self.config.salt_length)
        iv = os.urandom(self.config.iv_length)
        sealed = AESGCM(self._derive_key(salt)).encrypt(iv, plaintext.encode("utf-8"), None)
        # AESGCM appends the tag; the stored layout puts it before the body.
        ciphertext, tag = sealed[: -self.config.tag_length], sealed[-self.config.tag_length:]
        return base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a stored credential.

        Raises:
            DecryptionError: malformed input, failed authentication, or a
                legacy ciphertext while legacy support is disabled.
        """
        if not isinstance(ciphertext, str) or not ciphertext:
            raise DecryptionError("Encrypted value is empty")

        if self.detect_scheme(ciphertext) == CipherScheme.LEGACY_AES_CBC:
            if not self.config.allow_legacy:
                raise DecryptionError(
                    "Legacy AES-CBC credential found; enable legacy support to migrate it"
                )
            return self._decrypt_legacy(ciphertext)

        try:
            blob = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionError("Invalid encrypted value encoding") from exc

        cfg = self.config
        if len(blob) < cfg.header_length:
            raise DecryptionError("Encrypted value is truncated")

        salt = blob[: cfg.salt_length]
        iv = blob[cfg.salt_length : cfg.salt_length + cfg.iv_length]
        tag = blob[cfg.salt_length + cfg.iv_length : cfg.header_length]
        body = blob[cfg.header_length :]

        try:
            plaintext = AESGCM(self._derive_key(salt)).decrypt(iv, body + tag, None)
        except InvalidTag as exc:
            raise DecryptionError("Credential failed authentication") from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError("Decrypted credential is not valid UTF-8") from exc

    def _decrypt_legacy(self, ciphertext: str) -> str:
        iv_hex, body_hex = ciphertext.split(":", 1)
        try:
            iv = bytes.fromhex(iv_hex)
            body = bytes.fromhex(body_hex)
            decryptor = Cipher(algorithms.AES(self._legacy_key()), modes.CBC(iv)).decryptor()
            padded = decryptor.update(body) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            return (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")
        except ValueError as exc:
            # Covers bad hex, partial blocks, bad padding and bad UTF-8.
            raise DecryptionError("Invalid legacy encrypted value") from exc

    # ── Migration helpers ─────────────────────────────────────────────

    @staticmethod
    def detect_scheme(ciphertext: str) -> CipherScheme:
        if _LEGACY_PATTERN.match(ciphertext):
            return CipherScheme.LEGACY_AES_CBC
        return CipherScheme.AES_GCM

    @classmethod
    def is_legacy(cls, ciphertext: str) -> bool:
        return cls.detect_scheme(ciphertext) == CipherScheme.LEGACY_AES_CBC

    def reencrypt(self, ciphertext: str) -> str:
        """Decrypt any readable ciphertext and seal it with the current scheme."""
        if self.is_legacy(ciphertext):
            logger.info("Re-encrypting legacy AES-CBC credential")
        return self.encrypt(self.decrypt(ciphertext))
