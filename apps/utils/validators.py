import re
import uuid

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MOBILE_PATTERN = re.compile(r"^3\d{9}$")

# Route fragment for UUID primary keys
UUID_PATTERN = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"


def is_valid_email(value) -> bool:
    if not value or not isinstance(value, str):
        return False
    return bool(EMAIL_PATTERN.match(value.strip()))


def is_valid_phone(value) -> bool:
    """
    Colombian mobile: 10 digits starting with 3, optional +57 prefix.
    Spaces and dashes are ignored.
    """
    if not value or not isinstance(value, str):
        return False
    cleaned = re.sub(r"[\s\-]", "", value)
    if cleaned.startswith("+57"):
        cleaned = cleaned[3:]
    return bool(MOBILE_PATTERN.match(cleaned))


def validate_lat_lng(lat, lng):
    if not (-90 <= lat <= 90):
        raise ValueError("Latitude must be between -90 and 90.")
    if not (-180 <= lng <= 180):
        raise ValueError("Longitude must be between -180 and 180.")


def is_valid_uuid(value) -> bool:
    try:
        uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return False
    return True
