"""Input validation utilities for JSON and form request data."""
import re

from services.errors import InputError


def validate_required(value: str, field_name: str, max_length: int = None) -> str:
    """Validate that a required field is not empty and within length limit."""
    if not value or not str(value).strip():
        raise InputError(f'{field_name}: This field is required.', code='missing_field', field=field_name)
    value = str(value).strip()
    if max_length and len(value) > max_length:
        raise InputError(f'{field_name}: Must be at most {max_length} characters.',
                         code='invalid_field', field=field_name)
    return value


def validate_email(value: str, field_name: str = 'email') -> str:
    """Validate email format."""
    value = validate_required(value, field_name, max_length=120)
    # Basic email regex pattern
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    if not re.match(pattern, value):
        raise InputError(f'{field_name}: Invalid email format.', code='invalid_field', field=field_name)
    return value.lower()


def validate_url(value: str, field_name: str = 'url', max_length: int = 2048) -> str | None:
    """Validate URL format, returning None if empty."""
    if not value or not value.strip():
        return None
    value = value.strip()

    if len(value) > max_length:
        raise InputError(f'{field_name}: URL must be at most {max_length} characters.',
                         code='invalid_field', field=field_name)

    # Must start with http:// or https:// and have a dotted host
    pattern = r'^https?://[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?)+(/[a-zA-Z0-9._~:/?#\[\]@!$&\'()*+,;=%\-]*|\?[a-zA-Z0-9._~:/?#\[\]@!$&\'()*+,;=%\-]*)?$'
    if not re.match(pattern, value):
        raise InputError(f'{field_name}: Invalid URL format. Must be a valid http:// or https:// URL.',
                         code='invalid_field', field=field_name)
    return value


def parse_int(value, field_name: str = 'value', default: int = None,
              min_val: int = None, max_val: int = None) -> int | None:
    """Parse an integer query/form value, clamping it to [min_val, max_val]."""
    if value is None or str(value).strip() == '':
        return default
    try:
        result = int(str(value).strip())
    except ValueError:
        raise InputError(f'{field_name}: Invalid integer format.', code='invalid_field', field=field_name)
    if min_val is not None:
        result = max(result, min_val)
    if max_val is not None:
        result = min(result, max_val)
    return result
