"""
AES-256-GCM encryption for third-party credentials at rest.

Stored values have the form ``iv:tag:ciphertext`` with every part hex
encoded. The key is 32 bytes given as 64 hex characters (an optional ``0x``
prefix is accepted), read from TWIZZIT_ENCRYPTION_KEY unless passed in.
"""

import os
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from dotenv import load_dotenv

load_dotenv()

IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32


class EncryptionError(ValueError):
    """Raised when a key is unusable or a value cannot be encrypted or decrypted."""


def validate_key(key_hex: Optional[str]) -> bytes:
    if not key_hex:
        raise EncryptionError("Encryption key is required")
    clean = key_hex[2:] if key_hex.startswith("0x") else key_hex
    try:
        key = bytes.fromhex(clean)
    except ValueError:
        raise EncryptionError("Encryption key must be a valid hex string")
    if len(key) != KEY_LENGTH:
        raise EncryptionError(
            f"Encryption key must be {KEY_LENGTH} bytes ({KEY_LENGTH * 2} hex characters), got {len(key)} bytes"
        )
    return key


def _configured_key(key_hex: Optional[str]) -> bytes:
    return validate_key(key_hex if key_hex is not None else os.getenv("TWIZZIT_ENCRYPTION_KEY"))


def encrypt(plaintext: str, key_hex: Optional[str] = None) -> str:
    if plaintext is None:
        raise EncryptionError("Plaintext is required")
    key = _configured_key(key_hex)
    iv = secrets.token_bytes(IV_LENGTH)
    # AESGCM appends the tag to the ciphertext
    sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"


def decrypt(encrypted: str, key_hex: Optional[str] = None) -> str:
    if not encrypted:
        raise EncryptionError("Encrypted data is required")
    key = _configured_key(key_hex)

    parts = encrypted.split(":")
    if len(parts) != 3:
        raise EncryptionError("Invalid encrypted data format. Expected: iv:tag:ciphertext")
    try:
        iv, tag, ciphertext = (bytes.fromhex(p) for p in parts)
    except ValueError:
        raise EncryptionError("Encrypted data is not valid hex")
    if len(iv) != IV_LENGTH:
        raise EncryptionError(f"Invalid IV length: expected {IV_LENGTH} bytes, got {len(iv)}")
    if len(tag) != TAG_LENGTH:
        raise EncryptionError(f"Invalid auth tag length: expected {TAG_LENGTH} bytes, got {len(tag)}")

    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
    except InvalidTag:
        raise EncryptionError("Decryption failed: data may be corrupted or the key is incorrect")
    return plaintext.decode("utf-8")


def generate_key() -> str:
    return secrets.token_hex(KEY_LENGTH)


def key_works(key_hex: str) -> bool:
    """True when the key round-trips a sample value."""
    try:
        sample = "shotspot-key-check"
        return decrypt(encrypt(sample, key_hex), key_hex) == sample
    except EncryptionError:
        return False
