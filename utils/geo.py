import math
from typing import Tuple

from config import AVERAGE_SPEED_KMH
from models import Location


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    R = 6371  # Earth radius in km
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return R * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_km(a: Location, b: Location) -> float:
    return haversine(a.lat, a.lng, b.lat, b.lng)


def planar_distance(a: Location, b: Location) -> float:
    """
    Euclidean distance in raw degrees. Only for proximity comparisons and
    motion steps; never compare it against distance_km results.
    """
    return math.hypot(b.lat - a.lat, b.lng - a.lng)


def eta_minutes(distance: float, speed_kmh: float = AVERAGE_SPEED_KMH) -> int:
    minutes = math.ceil(distance / speed_kmh * 60)
    return max(1, minutes)


def realtime_eta_minutes(
    location: Location, destination: Location, speed_kmh: float = AVERAGE_SPEED_KMH
) -> int:
    return eta_minutes(distance_km(location, destination), speed_kmh)


def eta_description(minutes: int) -> str:
    if minutes < 1:
        return "Arriving now"
    if minutes == 1:
        return "1 minute away"
    if minutes <= 5:
        return f"{minutes} minutes away"
    if minutes <= 15:
        return f"~{minutes} minutes"
    return f"{minutes} minutes"


def step_toward(position: Location, target: Location, step: float) -> Tuple[Location, bool]:
    """
    Move `step` degrees along the straight line to `target`.

    Returns (new_position, arrived). A remaining distance under one step counts
    as arrival and snaps exactly onto `target` so equality checks downstream hold.
    """
    remaining = planar_distance(position, target)
    if remaining < step or remaining == 0:
        return target, True
    ratio = step / remaining
    moved = Location(
        lat=position.lat + (target.lat - position.lat) * ratio,
        lng=position.lng + (target.lng - position.lng) * ratio,
    )
    return moved, False
