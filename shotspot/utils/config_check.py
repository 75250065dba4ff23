"""
Startup validation of environment configuration.
"""

import logging
import os
from typing import List

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

MIN_JWT_SECRET_LENGTH = 32


class ConfigurationError(RuntimeError):
    """Raised in production when a required setting is missing or unsafe."""


def collect_problems() -> List[str]:
    """Return configuration problems as messages; empty when everything is set."""
    problems = []
    secret = os.getenv("JWT_SECRET")
    if not secret:
        problems.append("JWT_SECRET is not set")
    elif len(secret) < MIN_JWT_SECRET_LENGTH:
        problems.append(f"JWT_SECRET must be at least {MIN_JWT_SECRET_LENGTH} characters")

    if not os.getenv("DATABASE_URL") and not os.getenv("POSTGRES_HOST"):
        problems.append("DATABASE_URL is not set; using the local default")

    key = os.getenv("TWIZZIT_ENCRYPTION_KEY")
    if key:
        from shotspot.services.crypto_service import EncryptionError, validate_key

        try:
            validate_key(key)
        except EncryptionError as e:
            problems.append(f"TWIZZIT_ENCRYPTION_KEY is invalid: {e}")
    else:
        problems.append("TWIZZIT_ENCRYPTION_KEY is not set; Twizzit credentials cannot be stored")

    if os.getenv("ENABLE_ERROR_NOTIFICATIONS", "false").lower() == "true":
        if not os.getenv("SENDGRID_API_KEY"):
            problems.append("ENABLE_ERROR_NOTIFICATIONS is on but SENDGRID_API_KEY is not set")
        if not os.getenv("ERROR_NOTIFICATION_EMAIL"):
            problems.append("ENABLE_ERROR_NOTIFICATIONS is on but ERROR_NOTIFICATION_EMAIL is not set")
    return problems


def check_config() -> List[str]:
    """
    Log configuration problems. In production a missing or short JWT_SECRET
    is fatal.

    Raises:
        ConfigurationError: Production without a usable JWT_SECRET
    """
    problems = collect_problems()
    env = os.getenv("ENV", "development")
    for problem in problems:
        logger.warning(f"Configuration: {problem}")

    if env == "production":
        fatal = [p for p in problems if p.startswith("JWT_SECRET")]
        if fatal:
            raise ConfigurationError("; ".join(fatal))
    return problems
