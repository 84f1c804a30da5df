import json
from typing import List

from models import Ambulance, Hospital, Location, VehicleStatus, VehicleType


def _offset(center: Location, offset: List[float]) -> Location:
    d_lat, d_lng = offset
    return Location(lat=center.lat + d_lat, lng=center.lng + d_lng)


def load_fleet(path: str, center: Location) -> List[Ambulance]:
    """Fixed roster, each unit placed at its degree offset from the session center."""
    with open(path) as f:
        data = json.load(f)
    return [
        Ambulance(
            id=amb["id"],
            location=_offset(center, amb["offset"]),
            status=VehicleStatus(amb.get("status", VehicleStatus.AVAILABLE.value)),
            vehicle_type=VehicleType[amb["vehicle_type"]],
            capacity=amb.get("capacity", 1),
            current_patients=amb.get("current_patients", 0),
        )
        for amb in data["ambulances"]
    ]


def load_hospitals(path: str, center: Location) -> List[Hospital]:
    with open(path) as f:
        data = json.load(f)
    return [
        Hospital(
            id=hosp["id"],
            name=hosp["name"],
            location=_offset(center, hosp["offset"]),
            total_beds=hosp["total_beds"],
            available_beds=hosp["available_beds"],
        )
        for hosp in data["hospitals"]
    ]
