"""PII handling utilities: no raw user identifiers or message text in logs.

All owner identifiers must be hashed before logging or storage in
developer-accessible systems. Message text is only ever logged as a
fingerprint.
"""
import hashlib
import logging
from typing import Optional

logger = logging.getLogger(__name__)


# Loaded from PII_HASH_SALT (or Secrets Manager) at startup
_PII_SALT: Optional[str] = None

MIN_SALT_LENGTH = 32


def configure_pii_salt(salt: str) -> None:
    """Configure the PII hashing salt.

    Must be called during application startup before any PII hashing.

    Args:
        salt: Secret salt value

    Raises:
        ValueError: If salt is empty or too short
    """
    global _PII_SALT
    if not salt or len(salt) < MIN_SALT_LENGTH:
        logger.critical(
            "PII_SALT_CONFIGURATION_FAILED",
            extra={"reason": "Salt too short or empty", "min_length": MIN_SALT_LENGTH}
        )
        raise ValueError(f"PII salt must be at least {MIN_SALT_LENGTH} characters")

    _PII_SALT = salt
    logger.info("PII_SALT_CONFIGURED", extra={"salt_length": len(salt)})


def hash_pii(value: str) -> str:
    """Hash a PII value for safe logging and storage.

    Uses SHA-256 with a secret salt to create a consistent,
    non-reversible hash of owner identifiers.

    Args:
        value: The PII value to hash (owner ID, email, etc.)

    Returns:
        64-char hex digest safe for logging

    Raises:
        RuntimeError: If PII salt has not been configured
    """
    if _PII_SALT is None:
        logger.critical(
            "PII_HASH_FAILED",
            extra={"reason": "Salt not configured", "action": "call configure_pii_salt()"}
        )
        raise RuntimeError("PII salt not configured. Call configure_pii_salt() first.")

    salted = f"{_PII_SALT}{value}"
    return hashlib.sha256(salted.encode()).hexdigest()


def hash_text_for_audit(text: str) -> str:
    """Fingerprint message text without exposing content."""
    return hashlib.sha256(text.encode()).hexdigest()
