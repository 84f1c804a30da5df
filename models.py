from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class VehicleStatus(str, Enum):
    AVAILABLE = "Available"
    BUSY = "Busy"  # dwelling on scene
    EN_ROUTE = "En Route"
    AT_HOSPITAL = "At Hospital"


class VehicleType(str, Enum):
    ALS = "Advanced Life Support"
    BLS = "Basic Life Support"


class Ambulance(BaseModel):
    id: str
    location: Location
    status: VehicleStatus = VehicleStatus.AVAILABLE
    vehicle_type: VehicleType
    capacity: int = 1
    current_patients: int = 0  # advisory only, not an assignment constraint
    destination: Optional[Location] = None
    assigned_incident_id: Optional[str] = None
    route_path: List[Location] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_patients(self) -> "Ambulance":
        if not 0 <= self.current_patients <= self.capacity:
            raise ValueError("current_patients must be between 0 and capacity")
        return self


class IncidentPriority(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def needs_advanced_support(self) -> bool:
        return self in (IncidentPriority.CRITICAL, IncidentPriority.HIGH)


class IncidentStatus(str, Enum):
    PENDING = "Pending"
    DISPATCHED = "Dispatched"
    ON_SCENE = "On Scene"
    RESOLVED = "Resolved"
    ARCHIVED = "Archived"


class DispatchSource(str, Enum):
    ADVISORY = "Advisory"
    FALLBACK = "Fallback"


class Incident(BaseModel):
    id: str
    location: Location
    priority: IncidentPriority
    description: str
    status: IncidentStatus = IncidentStatus.PENDING
    created_at: datetime
    assigned_ambulance_id: Optional[str] = None
    eta_minutes: Optional[int] = None
    resolved_at: Optional[datetime] = None
    dispatch_rationale: Optional[str] = None
    dispatch_source: Optional[DispatchSource] = None

    @property
    def is_closed(self) -> bool:
        return self.status in (IncidentStatus.RESOLVED, IncidentStatus.ARCHIVED)


class Hospital(BaseModel):
    id: str
    name: str
    location: Location
    total_beds: int
    available_beds: int

    @model_validator(mode="after")
    def _check_beds(self) -> "Hospital":
        if not 0 <= self.available_beds <= self.total_beds:
            raise ValueError("available_beds must be between 0 and total_beds")
        return self


class IncidentReport(BaseModel):
    location: Location
    priority: IncidentPriority
    description: str = ""


class SessionStart(BaseModel):
    location: Optional[Location] = None


# Dispatch policy -----------------------------------------------------------


class AdvisoryCandidate(BaseModel):
    id: str
    location: Location
    vehicle_type: VehicleType


class AdvisoryRequest(BaseModel):
    incident_location: Location
    incident_priority: IncidentPriority
    incident_description: str
    candidates: List[AdvisoryCandidate]


class AdvisoryResponse(BaseModel):
    best_vehicle_id: str
    reasoning: str


class CandidateScore(BaseModel):
    vehicle_id: str
    distance_km: float
    eta_minutes: int
    type_suitable: bool


class DispatchSelection(BaseModel):
    ok: bool = True
    vehicle_id: str
    rationale: str
    source: DispatchSource


class DispatchFailure(BaseModel):
    ok: bool = False
    reason: str = "NoVehiclesAvailable"


DispatchResult = Union[DispatchSelection, DispatchFailure]


# Analytics -----------------------------------------------------------------


class AmbulanceMetrics(BaseModel):
    ambulance_id: str
    total_dispatches: int
    average_response_time: float
    incidents_resolved: int
    utilization_rate: float


class PeakHourData(BaseModel):
    hour: int
    incident_count: int
    average_response_time: float


class HeatmapPoint(BaseModel):
    lat: float
    lng: float
    count: int
    intensity: float


class RankingEntry(BaseModel):
    ambulance_id: str
    score: float


class AnalyticsMetrics(BaseModel):
    total_incidents: int
    resolved_incidents: int
    average_response_time: float
    incident_resolution_rate: float
    dispatch_efficiency: float
    average_incident_duration: float
    by_ambulance: dict[str, AmbulanceMetrics]
    peak_hours: List[PeakHourData]
    incident_heatmap: List[HeatmapPoint]


class AnalyticsReport(BaseModel):
    metrics: AnalyticsMetrics
    ranking: List[RankingEntry]
    top_peak_hours: List[PeakHourData]
    high_risk_zones: List[HeatmapPoint]


class EtaView(BaseModel):
    ambulance_id: str
    eta_minutes: Optional[int]
    description: str


class SimulationState(BaseModel):
    running: bool
    clock_seconds: float
    center: Location
    auto_incidents: bool
