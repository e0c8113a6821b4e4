import time
from typing import Any, Dict, Mapping, Optional

DEFAULT_PROPERTY_DETAILS: Dict[str, Any] = {
    "type": "town_house",
    "landArea": 45.0,
    "houseArea": 45.0,
    "laneWidth": 10.0,
    "facadeWidth": 4.0,
    "storyNumber": 3.0,
    "bedRoom": 2,
    "bathRoom": 2,
    "legal": "pink_book",
}


def build_valuation_payload(address_info: Mapping[str, Any],
                            property_details: Optional[Mapping[str, Any]] = None,
                            now_ms: Optional[int] = None) -> Dict[str, Any]:
    """Caller details over the defaults, address reshaped for the valuation backend."""
    details = {**DEFAULT_PROPERTY_DETAILS, **(property_details or {})}
    formatted = address_info.get("formatted_address") or ""

    return {
        "type": details["type"],
        "transId": now_ms if now_ms is not None else int(time.time() * 1000),
        "geoLocation": list(address_info.get("coordinates") or []),  # [lng, lat]
        "address": {
            "city": address_info.get("city") or "",
            "district": address_info.get("district") or "",
            "ward": address_info.get("ward") or "",
            "addressCode": None,
            "name": formatted,
            "detail": formatted,
        },
        "landArea": details["landArea"],
        "houseArea": details["houseArea"],
        "laneWidth": details["laneWidth"],
        # the backend reads this key with its trailing space
        "homeQualityRemaining ": 0.0,
        "facadeWidth": details["facadeWidth"],
        "storyNumber": details["storyNumber"],
        "bedRoom": details["bedRoom"],
        "bathRoom": details["bathRoom"],
        "legal": details["legal"],
        "utilities": details.get("utilities") or None,
        "strengths": details.get("strengths") or None,
        "weaknesses": details.get("weaknesses") or None,
    }
