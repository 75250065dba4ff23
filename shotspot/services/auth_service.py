"""
Authentication service: password hashing, JWT access tokens and password policy.
"""

import os
import re
import secrets
import logging
from datetime import timedelta
from typing import Optional, Dict, Tuple

import bcrypt
import jwt
from dotenv import load_dotenv

from shotspot.utils.constants import MIN_PASSWORD_LENGTH, PASSWORD_SPECIAL_CHARACTERS
from shotspot.utils.datetime_utils import utcnow

load_dotenv()

logger = logging.getLogger(__name__)

JWT_SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change-me-in-production-please")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRATION_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))
BCRYPT_ROUNDS = 12

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its bcrypt hash.

    Returns:
        True if password matches, False otherwise (including malformed hashes)
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Claims to include (user_id, username, role)
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT string
    """
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRATION_MINUTES))
    to_encode.update({"exp": expire, "iat": utcnow()})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_token_status(token: str) -> Tuple[Optional[Dict], Optional[str]]:
    """
    Decode a token and report why it failed, if it did.

    Returns:
        (payload, None) on success, (None, "expired") or (None, "invalid") on failure
    """
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
        return payload, None
    except jwt.ExpiredSignatureError:
        return None, "expired"
    except jwt.PyJWTError:
        return None, "invalid"


def verify_token(token: str) -> Optional[Dict]:
    """
    Verify and decode a JWT token.

    Returns:
        Decoded token payload or None if invalid or expired
    """
    payload, _ = decode_token_status(token)
    return payload


def generate_temporary_password(length: int = 16) -> str:
    """Random password that satisfies the password policy."""
    while True:
        candidate = secrets.token_urlsafe(length)[:length] + "!a1A"
        if not validate_password_strength(candidate):
            return candidate


def validate_password_strength(password: str) -> list:
    """
    Check a new password against the policy.

    Returns:
        List of human-readable problems; empty when the password is acceptable
    """
    problems = []
    if len(password) < MIN_PASSWORD_LENGTH:
        problems.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not any(c.islower() for c in password):
        problems.append("Password must contain at least one lowercase letter")
    if not any(c.isupper() for c in password):
        problems.append("Password must contain at least one uppercase letter")
    if not any(c.isdigit() for c in password):
        problems.append("Password must contain at least one number")
    if not any(c in PASSWORD_SPECIAL_CHARACTERS for c in password):
        problems.append("Password must contain at least one special character")
    return problems


def normalize_email(email: str) -> str:
    """
    Normalize and validate an email address.

    Raises:
        ValueError: If the address is malformed
    """
    normalized = email.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError("Invalid email format")
    return normalized
