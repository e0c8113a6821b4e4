from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# ----- Guland proxy -----

class PlanningDataRequest(BaseModel):
    # Anything beyond the required trio is forwarded untouched
    model_config = ConfigDict(extra="allow")

    marker_lat: Optional[float] = None
    marker_lng: Optional[float] = None
    province_id: Optional[Any] = None

class GeocodingRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None
    path: Optional[str] = None

class PricingRequest(BaseModel):
    # DataTables pagination
    draw: int = 1
    start: int = 0
    length: int = 50

    # Column searches
    district_name: str = ""         # columns[1][search][value], e.g. "hà đông"
    ward_name: str = ""             # columns[2][search][value]
    road_name: str = ""             # columns[3][search][value], e.g. "tô hiệu"

    # Location filters
    province_id: str = "01"
    district_id: str = ""
    road_id: str = ""

    # Global search
    search_value: str = ""
    search_regex: bool = False

    # Cache buster ("_" on the wire)
    timestamp: Optional[str] = None

# ----- Valuation -----

class AddressInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    city: Optional[str] = None
    district: Optional[str] = None
    ward: Optional[str] = None
    formatted_address: Optional[str] = None
    coordinates: List[float] = Field(default_factory=list)

class CreatePayloadRequest(BaseModel):
    address_info: Optional[AddressInfo] = None
    property_details: Dict[str, Any] = Field(default_factory=dict)

class ValuationRequest(BaseModel):
    payload: Optional[Dict[str, Any]] = None
    auth_token: Optional[str] = None

# ----- Planning -----

class PlanningAnalysisRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None
    imagePath: Optional[str] = None
    landInfo: Optional[str] = None

class PlanningAnalysisInput(BaseModel):
    imagePath: str = Field(description="URL or path of the planning map image")
    landInfo: str = Field(description="Plot details: number, sheet, area, address, land type, coordinates")

class PlanningAnalysis(BaseModel):
    currentStatus: str = Field(description="Current land use and its map colour / symbol")
    newPlanning: str = Field(description="Planned designation")
    affectedArea: str = Field(description="Affected area, ~m² and ~%")
    impactLevel: str = Field(description="CAO / TRUNG BÌNH / THẤP")
    notes: str = Field(description="One line of notable remarks")

class PlanningCaptureRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None
    zoom: int = 18
    useMosaic: bool = True
    mapType: str = "qh2030"

class DetailLayerRequest(BaseModel):
    id: Optional[str] = None

# ----- Property flows -----

class PropertyFlowRequest(BaseModel):
    """Body shared by property-valuation, property-analysis and complete-flow."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    property_details: Dict[str, Any] = Field(default_factory=dict)
    auth_token: Optional[str] = None

class ValuationRangeInput(BaseModel):
    address: str = Field(description="Formatted address of the property")
    size: float = Field(description="Floor area, m²")
    bedrooms: int
    bathrooms: int
    lotSize: float = Field(description="Land area, m²")
    yearBuilt: Optional[int] = None
    marketData: str = Field(description="Market summary for comparable properties in the area")

class ValuationRange(BaseModel):
    lowValue: float = Field(description="Minimum likely price, VND")
    reasonableValue: float = Field(description="Most likely price, VND")
    highValue: float = Field(description="Maximum achievable price, VND")

class PropertyAnalysisInput(BaseModel):
    address: Optional[str] = None
    city: str
    district: str
    ward: str
    administrativeLevel: int = 0
    type: str
    size: float
    lotSize: float
    landArea: float
    houseArea: float
    laneWidth: float
    facadeWidth: float
    storyNumber: Optional[float] = None
    amenities: List[str] = Field(default_factory=list)
    legal: Optional[str] = None
    marketData: str

class RadarScore(BaseModel):
    legalityScore: float = Field(ge=1, le=10)
    liquidityScore: float = Field(ge=1, le=10)
    locationScore: float = Field(ge=1, le=10)
    evaluationScore: float = Field(ge=1, le=10)
    dividendScore: float = Field(ge=1, le=10)
    # legality, liquidity, location, evaluation, dividend
    descriptions: List[str] = Field(min_length=5, max_length=5)

class PropertyAnalysis(BaseModel):
    radarScore: RadarScore

class PropertySummaryInput(BaseModel):
    locationScore: float
    utilitiesScore: float
    planningScore: float
    legalScore: float
    qualityScore: float
    locationDetails: str = ""
    utilitiesDetails: str = ""
    planningDetails: str = ""
    legalDetails: str = ""
    qualityDetails: str = ""

class PropertySummary(BaseModel):
    summary: str
