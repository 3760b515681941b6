"""
Encryption of third-party access tokens at rest.

Tokens are sealed with AES-256-GCM before being stored on the User row and
opened only when the import pipeline needs to call the Graph API. The stored
value is self-describing: base64(12-byte nonce || 16-byte tag || ciphertext).

Without a configured key the vault runs in pass-through mode and returns
values unchanged. Decrypting a value that is not a valid vault ciphertext
(for example a token written before encryption was enabled) also returns the
input unchanged.
"""

import base64
import binascii
import logging
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32


class TokenVault:
    """Seal and open access tokens with a single symmetric key."""

    def __init__(self, key_hex: str | None = None):
        """
        Args:
            key_hex: 64 hex characters (32 bytes). Empty or None enables
                pass-through mode.

        Raises:
            ValueError: If the key is not valid hex or not 32 bytes long
        """
        self._cipher: AESGCM | None = None
        if key_hex:
            try:
                key = bytes.fromhex(key_hex)
            except ValueError as e:
                raise ValueError("TOKEN_ENCRYPTION_KEY must be a hex string") from e
            if len(key) != KEY_SIZE:
                raise ValueError(f"TOKEN_ENCRYPTION_KEY must be {KEY_SIZE * 2} hex characters")
            self._cipher = AESGCM(key)

    @property
    def enabled(self) -> bool:
        return self._cipher is not None

    def warn_if_unconfigured(self) -> bool:
        """Log a startup warning when tokens will be stored in clear. Returns True if warned."""
        if self.enabled:
            return False
        logger.warning(
            "TOKEN_ENCRYPTION_KEY is not set: third-party access tokens will be stored unencrypted"
        )
        return True

    def encrypt(self, plaintext: str | None) -> str | None:
        if plaintext is None or self._cipher is None:
            return plaintext
        nonce = secrets.token_bytes(NONCE_SIZE)
        sealed = self._cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
        # AESGCM appends the tag; the stored layout puts it before the ciphertext
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return base64.b64encode(nonce + tag + ciphertext).decode("ascii")

    def decrypt(self, value: str | None) -> str | None:
        if value is None or self._cipher is None:
            return value
        try:
            raw = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            logger.debug("Token is not base64; treating it as a legacy plaintext token")
            return value
        if len(raw) <= NONCE_SIZE + TAG_SIZE:
            logger.debug("Token too short to be vault ciphertext; treating it as plaintext")
            return value
        nonce = raw[:NONCE_SIZE]
        tag = raw[NONCE_SIZE : NONCE_SIZE + TAG_SIZE]
        ciphertext = raw[NONCE_SIZE + TAG_SIZE :]
        try:
            plaintext = self._cipher.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag:
            logger.debug("Token failed authentication; treating it as plaintext")
            return value
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            return value
