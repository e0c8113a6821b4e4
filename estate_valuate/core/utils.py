import hashlib
import math
import re
import unicodedata

from .errors import InvalidParameter


def parse_float(value, name: str) -> float:
    """Parse a query/body value as a finite float or raise InvalidParameter."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidParameter(f"Missing or invalid {name}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(f"Missing or invalid {name}") from None
    if not math.isfinite(number):
        raise InvalidParameter(f"Missing or invalid {name}")
    return number


def parse_coordinates(lat, lng) -> tuple[float, float]:
    """Both coordinates or neither; ranges are checked too."""
    try:
        lat_f = parse_float(lat, "lat")
        lng_f = parse_float(lng, "lng")
    except InvalidParameter:
        raise InvalidParameter("Missing or invalid lat/lng") from None
    if not (-90 <= lat_f <= 90 and -180 <= lng_f <= 180):
        raise InvalidParameter("Missing or invalid lat/lng")
    return lat_f, lng_f


def round_half_up(x: float) -> int:
    # Python's round() is banker's rounding; chart values round .5 upwards.
    return int(math.floor(x + 0.5))


def mask_secret(value: str | None) -> str:
    """Keep only the edges of a token for log lines."""
    if not value or len(value) < 8:
        return "***"
    return f"{value[:4]}***{value[-4:]}"


def weak_etag(payload_bytes: bytes) -> str:
    """Weak ETag for client-side conditional requests."""
    h = hashlib.sha256(payload_bytes).hexdigest()[:24]
    return f'W/"{h}"'


def to_slug(name: str) -> str:
    """'Thanh Xuân' -> 'thanh_xuan', the form the listing APIs key areas by."""
    ascii_name = unicodedata.normalize("NFKD", name.replace("đ", "d").replace("Đ", "D"))
    ascii_name = ascii_name.encode("ascii", "ignore").decode("ascii").lower()
    return re.sub(r"[^a-z0-9]+", "_", ascii_name).strip("_")
