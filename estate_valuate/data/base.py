from typing import Protocol, List, Optional, Dict, Any
from dataclasses import dataclass, field

# ----- Data shapes (thin & explicit, request-scoped) -----

@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float

@dataclass(frozen=True)
class AddressResolution:
    city: str
    district: str
    ward: str
    formatted_address: str
    coordinates: List[float] = field(default_factory=list)   # [lng, lat]
    polygon: List[Any] = field(default_factory=list)
    bounding_box: List[float] = field(default_factory=list)

# Label (street / segment / category) -> price string, e.g. "120,5 triệu/m²"
PriceTable = Dict[str, str]

@dataclass(frozen=True)
class TrendPoint:
    month: str              # "T7/24"
    price: int              # millions of VND per m², rounded for charts
    price_raw: float        # VND per m²
    count: Optional[int]
    min_price: Optional[float]
    max_price: Optional[float]
    date: str               # provider's createdDate, untouched

    def as_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "price": self.price,
            "priceRaw": self.price_raw,
            "count": self.count,
            "minPrice": self.min_price,
            "maxPrice": self.max_price,
            "date": self.date,
        }

UTILITY_TYPES = ("hospital", "market", "restaurant", "cafe", "supermarket", "commercial_center")

@dataclass
class UtilitiesResult:
    total: int
    items: List[Dict[str, Any]]
    grouped: Dict[str, List[Dict[str, Any]]]

# ----- Protocols (interfaces) -----

class ReverseGeocoder(Protocol):
    async def reverse_keyword(self, point: GeoPoint) -> str: ...

class LocationClient(Protocol):
    async def resolve(self, point: GeoPoint) -> tuple[dict, AddressResolution]: ...

class AreaPriceSource(Protocol):
    async def suggest_hrefs(self, keyword: str) -> List[str]: ...
    async def price_fragment(self, href: str) -> PriceTable: ...

class TrendsClient(Protocol):
    async def price_series(self, city: str, district: str, category: str) -> List[TrendPoint]: ...

class UtilitiesClient(Protocol):
    async def nearby(self, point: GeoPoint, distance: float, size: int) -> UtilitiesResult: ...
