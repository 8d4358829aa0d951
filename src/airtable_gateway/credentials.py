"""
Personal access token helpers.

The raw token is only ever sent in the Authorization header. Everything that
needs to identify the credential (rate-limit keys, log lines) uses the short
hash from hash_secret().
"""

import hashlib
from dataclasses import dataclass, field

# Typical PATs are ~82 characters
MIN_TOKEN_LENGTH = 70
MAX_TOKEN_LENGTH = 100


@dataclass(frozen=True)
class TokenValidation:
    """Result of a token format check. Warnings never block startup."""

    is_valid: bool
    warnings: list[str] = field(default_factory=list)


def hash_secret(secret: str) -> str:
    """Return the first 12 hex chars of the SHA-256 of ``secret``."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()[:12]


def validate_api_key(api_key: str | None) -> TokenValidation:
    """
    Check an Airtable token for common copy/paste mistakes.

    Args:
        api_key: Token as configured

    Returns:
        TokenValidation with one warning per detected issue
    """
    if not api_key or not api_key.strip():
        return TokenValidation(
            is_valid=False,
            warnings=["No API key provided. Set AIRTABLE_PAT environment variable."],
        )

    warnings: list[str] = []
    trimmed = api_key.strip()

    if api_key != trimmed:
        warnings.append("API key contains leading or trailing whitespace. This has been trimmed.")

    # PATs have exactly one dot separating the token id from the secret
    dot_count = trimmed.count(".")
    if dot_count == 0:
        warnings.append(
            f"Expected one dot (.) in API key, found {dot_count}. "
            "Ensure you copied the entire token, not just the token ID."
        )
    elif dot_count > 1:
        warnings.append(
            f"Expected one dot (.) in API key, found {dot_count}. "
            "Ensure you copied the API key correctly."
        )

    if len(trimmed) < MIN_TOKEN_LENGTH:
        warnings.append(
            f"API key seems too short ({len(trimmed)} characters). "
            "Personal Access Tokens are typically around 82 characters."
        )
    elif len(trimmed) > MAX_TOKEN_LENGTH:
        warnings.append(
            f"API key seems too long ({len(trimmed)} characters). "
            "Personal Access Tokens are typically around 82 characters."
        )

    if trimmed.startswith("key"):
        warnings.append(
            'This appears to be an old-style API key (starts with "key"). '
            "Please create a Personal Access Token at https://airtable.com/create/tokens instead."
        )
    elif not trimmed.startswith("pat"):
        warnings.append(
            'API key does not start with expected prefix ("pat" for Personal Access Token). '
            "Verify you copied the correct token."
        )

    return TokenValidation(is_valid=not warnings, warnings=warnings)


__all__ = ["TokenValidation", "hash_secret", "validate_api_key"]
