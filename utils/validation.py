"""Input validation and sanitization utilities"""
import re
from typing import Any, Dict, Optional

# Permissive on purpose: anything shaped like local@domain.tld
EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

# RFC 5321 path limit
MAX_EMAIL_LENGTH = 254


def sanitize_string(value: Any, max_length: Optional[int] = None, allow_empty: bool = True) -> Optional[str]:
    """Sanitize string input"""
    if value is None:
        return None if allow_empty else ""

    # Convert to string and strip whitespace
    sanitized = str(value).strip()

    # Remove null bytes and control characters (except newlines and tabs)
    sanitized = re.sub(r'[\x00-\x08\x0b-\x0c\x0e-\x1f]', '', sanitized)

    # Enforce max length
    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized if (sanitized or allow_empty) else None


def validate_email(email: str) -> bool:
    """Validate email format"""
    if not email or not isinstance(email, str):
        return False
    if len(email) > MAX_EMAIL_LENGTH:
        return False
    return bool(EMAIL_PATTERN.match(email))


def sanitize_json_input(data: Dict[str, Any], schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Sanitize JSON input based on schema

    Schema format:
    {
        'field_name': {
            'type': 'string' | 'email',
            'required': bool,
            'max_length': int,
            'default': any
        }
    }

    Empty optional strings are dropped so callers can rely on .get() returning None.
    """
    sanitized = {}

    for field_name, field_schema in schema.items():
        field_type = field_schema.get('type', 'string')
        required = field_schema.get('required', False)
        default = field_schema.get('default')
        max_length = field_schema.get('max_length')

        value = data.get(field_name, default)

        # Check required fields
        if required and (value is None or (isinstance(value, str) and not value.strip())):
            raise ValueError(f"Field '{field_name}' is required")

        # Skip None values unless required
        if value is None:
            continue

        if field_type == 'string':
            cleaned = sanitize_string(value, max_length=max_length)
            if cleaned:
                sanitized[field_name] = cleaned

        elif field_type == 'email':
            if not isinstance(value, str):
                raise ValueError(f"Invalid email format for field '{field_name}'")
            # Truncating an address would change it, so over-long values are rejected instead
            email = sanitize_string(value)
            if not validate_email(email):
                raise ValueError(f"Invalid email format for field '{field_name}'")
            sanitized[field_name] = email

    return sanitized
