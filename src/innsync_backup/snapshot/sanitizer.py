"""Strip and mask sensitive fields before data leaves the store.

``sanitize_record`` is applied to every record that goes into a snapshot.
``mask_sensitive`` is applied to payloads before they are logged.
Both are pure and idempotent.
"""

from typing import Any

MASK_CHAR = "*"

# Never exported
REMOVED_FIELDS = frozenset({
    "password_hash",
    "auth_token",
    "secret_key",
    "api_key",
    "access_token",
    "refresh_token",
})

# Exported with the interior masked
MASKED_FIELDS = frozenset({
    "id_number",
    "passport_number",
    "national_id",
})

# Substrings that mark a key as sensitive in log payloads
SENSITIVE_KEY_PARTS = (
    "password",
    "token",
    "secret",
    "key",
    "auth",
    "id_number",
    "passport",
    "credit_card",
    "bank_account",
    "ssn",
    "social_security",
)


def mask_value(value: Any) -> str:
    """Mask a value, keeping the first two and last two characters.

    Strings of length 4 or less and non-string values become ``"***"``.
    Masking an already-masked value returns it unchanged.

    Example:
        >>> mask_value("3174012345670001")
        '31************01'
        >>> mask_value("abc")
        '***'
    """
    if isinstance(value, str) and len(value) > 4:
        return value[:2] + MASK_CHAR * (len(value) - 4) + value[-2:]
    return MASK_CHAR * 3


def sanitize_record(record: dict) -> dict:
    """Return a copy of ``record`` safe to include in a snapshot."""
    sanitized = {k: v for k, v in record.items() if k not in REMOVED_FIELDS}
    for field in MASKED_FIELDS:
        if sanitized.get(field):
            sanitized[field] = mask_value(sanitized[field])
    return sanitized


def _is_sensitive_key(key: str) -> bool:
    lower_key = key.lower()
    return any(part in lower_key for part in SENSITIVE_KEY_PARTS)


def mask_sensitive(data: Any) -> Any:
    """Recursively mask sensitive keys in a log payload.

    Dicts are copied; lists are walked; other values are returned as-is.
    """
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if isinstance(key, str) and _is_sensitive_key(key) and not isinstance(value, (dict, list)):
                masked[key] = mask_value(value)
            else:
                masked[key] = mask_sensitive(value)
        return masked
    if isinstance(data, list):
        return [mask_sensitive(item) for item in data]
    return data
