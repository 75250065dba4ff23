"""
Tests for credential encryption.
"""

import pytest

from shotspot.services import crypto_service
from shotspot.services.crypto_service import EncryptionError

KEY = "ab" * 32


def test_encrypt_produces_three_hex_parts():
    encrypted = crypto_service.encrypt("secret-password", KEY)
    iv, tag, ciphertext = encrypted.split(":")

    assert len(bytes.fromhex(iv)) == crypto_service.IV_LENGTH
    assert len(bytes.fromhex(tag)) == crypto_service.TAG_LENGTH
    assert "secret-password" not in encrypted
    assert crypto_service.decrypt(encrypted, KEY) == "secret-password"


def test_encrypt_uses_fresh_iv():
    assert crypto_service.encrypt("same", KEY) != crypto_service.encrypt("same", KEY)


def test_key_from_environment(monkeypatch):
    monkeypatch.setenv("TWIZZIT_ENCRYPTION_KEY", "0x" + "cd" * 32)
    encrypted = crypto_service.encrypt("from-env")
    assert crypto_service.decrypt(encrypted) == "from-env"


def test_wrong_key_fails():
    encrypted = crypto_service.encrypt("secret", KEY)
    with pytest.raises(EncryptionError, match="Decryption failed"):
        crypto_service.decrypt(encrypted, "ef" * 32)


def test_tampered_ciphertext_fails():
    iv, tag, ciphertext = crypto_service.encrypt("secret", KEY).split(":")
    flipped = format(int(ciphertext[:2], 16) ^ 0xFF, "02x") + ciphertext[2:]
    with pytest.raises(EncryptionError):
        crypto_service.decrypt(f"{iv}:{tag}:{flipped}", KEY)


@pytest.mark.parametrize(
    "value,message",
    [
        ("onlyonepart", "Invalid encrypted data format"),
        ("zz:zz:zz", "not valid hex"),
        ("abcd:" + "00" * 16 + ":00", "Invalid IV length"),
    ],
)
def test_decrypt_rejects_malformed_input(value, message):
    with pytest.raises(EncryptionError, match=message):
        crypto_service.decrypt(value, KEY)


def test_validate_key():
    assert len(crypto_service.validate_key(KEY)) == 32
    with pytest.raises(EncryptionError, match="required"):
        crypto_service.validate_key("")
    with pytest.raises(EncryptionError, match="valid hex"):
        crypto_service.validate_key("not-hex")
    with pytest.raises(EncryptionError, match="32 bytes"):
        crypto_service.validate_key("ab" * 16)


def test_generate_key_works():
    key = crypto_service.generate_key()
    assert len(key) == 64
    assert crypto_service.key_works(key) is True
    assert crypto_service.key_works("short") is False
