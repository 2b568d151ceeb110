"""AES-GCM encryption for provider credentials stored at rest.

Tokens have the form ``<nonce hex>:<ciphertext hex>`` where the ciphertext
includes the 16-byte GCM tag.
"""

import hashlib
import os
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from apihub.config import get_settings
from apihub.errors import CorruptCiphertextError

TOKEN_DELIMITER = ":"
NONCE_BYTES = 12


def derive_key(secret_key: str) -> bytes:
    """Derive the 32-byte AES-256 key from the configured secret."""
    return hashlib.sha256(secret_key.encode()).digest()


@lru_cache(maxsize=8)
def _cipher_for(secret_key: str) -> AESGCM:
    return AESGCM(derive_key(secret_key))


def get_cipher() -> AESGCM:
    """Get the AEAD cipher keyed from the server's secret_key."""
    return _cipher_for(get_settings().secret_key)


def encrypt_secret(plaintext: str, *, cipher: AESGCM | None = None) -> str:
    """Encrypt a provider secret into a storable token."""
    aead = cipher or get_cipher()
    nonce = os.urandom(NONCE_BYTES)
    ciphertext = aead.encrypt(nonce, plaintext.encode(), None)
    return f"{nonce.hex()}{TOKEN_DELIMITER}{ciphertext.hex()}"


def decrypt_secret(token: str, *, cipher: AESGCM | None = None) -> str:
    """Decrypt a token produced by ``encrypt_secret``.

    Raises:
        CorruptCiphertextError: the token is malformed or fails authentication.
    """
    segments = token.split(TOKEN_DELIMITER)
    if len(segments) != 2:
        raise CorruptCiphertextError(
            f"Expected 2 token segments, got {len(segments)}"
        )

    nonce_hex, data_hex = segments
    try:
        nonce = bytes.fromhex(nonce_hex)
        data = bytes.fromhex(data_hex)
    except ValueError as exc:
        raise CorruptCiphertextError("Token segments are not valid hex") from exc

    if len(nonce) != NONCE_BYTES:
        raise CorruptCiphertextError(f"Nonce must be {NONCE_BYTES} bytes")

    aead = cipher or get_cipher()
    try:
        plaintext = aead.decrypt(nonce, data, None)
    except InvalidTag as exc:
        raise CorruptCiphertextError("Ciphertext failed authentication") from exc

    try:
        return plaintext.decode()
    except UnicodeDecodeError as exc:
        raise CorruptCiphertextError("Decrypted secret is not UTF-8") from exc

