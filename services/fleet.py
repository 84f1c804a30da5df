import logging
from enum import Enum
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from config import AMBULANCE_SPEED, HOSPITAL_DWELL_SECONDS, SCENE_DWELL_SECONDS, TICK_SECONDS
from errors import InvalidTransition, UnknownEntity
from models import Ambulance, Hospital, Incident, Location, VehicleStatus
from services.route_follower import advance, advance_direct
from services.timers import Timer, TimerKind, TimerRegistry
from utils.geo import planar_distance

logger = logging.getLogger(__name__)


class FleetEventKind(str, Enum):
    ARRIVED_ON_SCENE = "arrived_on_scene"
    LEFT_SCENE = "left_scene"
    ARRIVED_AT_HOSPITAL = "arrived_at_hospital"
    BACK_IN_SERVICE = "back_in_service"


class FleetEvent(NamedTuple):
    kind: FleetEventKind
    vehicle_id: str
    incident_id: Optional[str]
    clock: float


class RouteRequest(NamedTuple):
    vehicle_id: str
    start: Location
    destination: Location


class TickResult(NamedTuple):
    events: List[FleetEvent]
    route_requests: List[RouteRequest]


# Per-vehicle transitions. Each returns a new Ambulance and leaves its input untouched.


def assign_vehicle(vehicle: Ambulance, incident: Incident) -> Ambulance:
    if vehicle.status != VehicleStatus.AVAILABLE:
        raise InvalidTransition(f"{vehicle.id} is {vehicle.status.value}, not Available")
    return vehicle.model_copy(
        update={
            "status": VehicleStatus.EN_ROUTE,
            "destination": incident.location,
            "assigned_incident_id": incident.id,
            "route_path": [],
        }
    )


def move_vehicle(vehicle: Ambulance, speed: float) -> Tuple[Ambulance, bool]:
    """Advance an en-route vehicle one tick. Returns (vehicle, arrived)."""
    if vehicle.status != VehicleStatus.EN_ROUTE or vehicle.destination is None:
        return vehicle, False

    if vehicle.route_path:
        # A path in progress decides arrival; the straight-line check is not consulted.
        step = advance(vehicle.location, vehicle.route_path, speed)
        if step.arrived:
            # Road paths end at the nearest road; any gap left is covered in straight-line ticks.
            if planar_distance(step.next_position, vehicle.destination) <= speed:
                return vehicle.model_copy(update={"location": vehicle.destination, "route_path": []}), True
            return vehicle.model_copy(update={"location": step.next_position, "route_path": []}), False
        return (
            vehicle.model_copy(
                update={"location": step.next_position, "route_path": step.remaining_waypoints}
            ),
            False,
        )

    step = advance_direct(vehicle.location, vehicle.destination, speed)
    return vehicle.model_copy(update={"location": step.next_position}), step.arrived


def arrive_vehicle(vehicle: Ambulance) -> Ambulance:
    if vehicle.status != VehicleStatus.EN_ROUTE:
        raise InvalidTransition(f"{vehicle.id} is {vehicle.status.value}, not En Route")
    if vehicle.assigned_incident_id:
        return vehicle.model_copy(
            update={"status": VehicleStatus.BUSY, "destination": None, "route_path": []}
        )
    return vehicle.model_copy(
        update={
            "status": VehicleStatus.AT_HOSPITAL,
            "assigned_incident_id": None,
            "destination": None,
            "route_path": [],
        }
    )


def depart_scene(vehicle: Ambulance, hospital: Hospital) -> Ambulance:
    if vehicle.status != VehicleStatus.BUSY:
        raise InvalidTransition(f"{vehicle.id} is {vehicle.status.value}, not Busy")
    return vehicle.model_copy(
        update={
            "status": VehicleStatus.EN_ROUTE,
            "destination": hospital.location,
            "assigned_incident_id": None,
            "route_path": [],
        }
    )


def return_to_service(vehicle: Ambulance) -> Ambulance:
    if vehicle.status != VehicleStatus.AT_HOSPITAL:
        raise InvalidTransition(f"{vehicle.id} is {vehicle.status.value}, not At Hospital")
    return vehicle.model_copy(
        update={
            "status": VehicleStatus.AVAILABLE,
            "assigned_incident_id": None,
            "destination": None,
            "route_path": [],
        }
    )


def nearest_hospital(location: Location, hospitals: Sequence[Hospital]) -> Hospital:
    return min(hospitals, key=lambda h: planar_distance(location, h.location))


class FleetStateMachine:
    """
    Owns the authoritative state of every vehicle.

    `tick()` advances the clock by one interval, fires due dwell timers, then
    moves every en-route vehicle. It returns the lifecycle events produced and
    any road routes that should be requested; it never waits on providers.
    """

    def __init__(
        self,
        vehicles: Iterable[Ambulance],
        hospitals: Sequence[Hospital],
        speed: float = AMBULANCE_SPEED,
        tick_seconds: float = TICK_SECONDS,
        scene_dwell: float = SCENE_DWELL_SECONDS,
        hospital_dwell: float = HOSPITAL_DWELL_SECONDS,
    ):
        if not hospitals:
            raise ValueError("FleetStateMachine needs at least one hospital")
        self._vehicles: Dict[str, Ambulance] = {v.id: v for v in vehicles}
        self.hospitals = list(hospitals)
        self.speed = speed
        self.tick_seconds = tick_seconds
        self.scene_dwell = scene_dwell
        self.hospital_dwell = hospital_dwell
        self.clock = 0.0
        self.timers = TimerRegistry()
        # vehicle id -> destination whose route has already been requested
        self._route_requested: Dict[str, Location] = {}

        for vehicle in self._vehicles.values():
            if vehicle.status == VehicleStatus.AT_HOSPITAL:
                self.timers.schedule(vehicle.id, self.clock + hospital_dwell, TimerKind.RETURN_TO_SERVICE)
            elif vehicle.status == VehicleStatus.BUSY:
                self.timers.schedule(vehicle.id, self.clock + scene_dwell, TimerKind.LEAVE_SCENE)

    # Queries

    def vehicles(self) -> List[Ambulance]:
        return list(self._vehicles.values())

    def get(self, vehicle_id: str) -> Ambulance:
        try:
            return self._vehicles[vehicle_id]
        except KeyError:
            raise UnknownEntity(f"Ambulance {vehicle_id} not found") from None

    def find(self, vehicle_id: str) -> Optional[Ambulance]:
        return self._vehicles.get(vehicle_id)

    def available(self) -> List[Ambulance]:
        return [v for v in self._vehicles.values() if v.status == VehicleStatus.AVAILABLE]

    # Commands

    def assign(self, vehicle_id: str, incident: Incident) -> Ambulance:
        vehicle = assign_vehicle(self.get(vehicle_id), incident)
        self.timers.cancel(vehicle_id)
        self._route_requested.pop(vehicle_id, None)
        self._vehicles[vehicle_id] = vehicle
        logger.info("ASSIGNED vehicle=%s incident=%s", vehicle_id, incident.id)
        return vehicle

    def apply_route(self, vehicle_id: str, destination: Location, path: Sequence[Location]) -> bool:
        """
        Install a fetched road path. Ignored when the vehicle is gone, no longer
        heading to `destination`, already following a path, or the path is too
        short to follow.
        """
        vehicle = self._vehicles.get(vehicle_id)
        if (
            vehicle is None
            or vehicle.status != VehicleStatus.EN_ROUTE
            or vehicle.destination != destination
            or vehicle.route_path
            or len(path) < 2
        ):
            logger.debug("ROUTE_STALE vehicle=%s ignored", vehicle_id)
            return False
        self._vehicles[vehicle_id] = vehicle.model_copy(update={"route_path": list(path)})
        return True

    def collect_route_requests(self) -> List[RouteRequest]:
        requests = []
        for vehicle in self._vehicles.values():
            if (
                vehicle.status != VehicleStatus.EN_ROUTE
                or vehicle.destination is None
                or vehicle.route_path
            ):
                continue
            if self._route_requested.get(vehicle.id) == vehicle.destination:
                continue
            self._route_requested[vehicle.id] = vehicle.destination
            requests.append(RouteRequest(vehicle.id, vehicle.location, vehicle.destination))
        return requests

    def tick(self) -> TickResult:
        self.clock += self.tick_seconds
        events: List[FleetEvent] = []

        for timer in self.timers.pop_due(self.clock):
            event = self._fire(timer)
            if event is not None:
                events.append(event)

        for vehicle_id, vehicle in list(self._vehicles.items()):
            if vehicle.status != VehicleStatus.EN_ROUTE or vehicle.destination is None:
                continue
            moved, arrived = move_vehicle(vehicle, self.speed)
            if arrived:
                moved = self._arrive(moved, events)
            self._vehicles[vehicle_id] = moved

        return TickResult(events, self.collect_route_requests())

    # Internals

    def _arrive(self, vehicle: Ambulance, events: List[FleetEvent]) -> Ambulance:
        incident_id = vehicle.assigned_incident_id
        arrived = arrive_vehicle(vehicle)
        self._route_requested.pop(vehicle.id, None)
        if arrived.status == VehicleStatus.BUSY:
            self.timers.schedule(vehicle.id, self.clock + self.scene_dwell, TimerKind.LEAVE_SCENE)
            events.append(FleetEvent(FleetEventKind.ARRIVED_ON_SCENE, vehicle.id, incident_id, self.clock))
            logger.info("ARRIVED_ON_SCENE vehicle=%s incident=%s", vehicle.id, incident_id)
        else:
            self.timers.schedule(vehicle.id, self.clock + self.hospital_dwell, TimerKind.RETURN_TO_SERVICE)
            events.append(FleetEvent(FleetEventKind.ARRIVED_AT_HOSPITAL, vehicle.id, None, self.clock))
            logger.info("ARRIVED_AT_HOSPITAL vehicle=%s", vehicle.id)
        return arrived

    def _fire(self, timer: Timer) -> Optional[FleetEvent]:
        vehicle = self._vehicles.get(timer.vehicle_id)
        if vehicle is None:
            return None

        if timer.kind == TimerKind.LEAVE_SCENE:
            if vehicle.status != VehicleStatus.BUSY:
                logger.debug("TIMER_STALE vehicle=%s kind=%s", vehicle.id, timer.kind.value)
                return None
            hospital = nearest_hospital(vehicle.location, self.hospitals)
            self._vehicles[vehicle.id] = depart_scene(vehicle, hospital)
            logger.info("LEFT_SCENE vehicle=%s hospital=%s", vehicle.id, hospital.id)
            return FleetEvent(FleetEventKind.LEFT_SCENE, vehicle.id, vehicle.assigned_incident_id, self.clock)

        if vehicle.status != VehicleStatus.AT_HOSPITAL:
            logger.debug("TIMER_STALE vehicle=%s kind=%s", vehicle.id, timer.kind.value)
            return None
        self._vehicles[vehicle.id] = return_to_service(vehicle)
        logger.info("BACK_IN_SERVICE vehicle=%s", vehicle.id)
        return FleetEvent(FleetEventKind.BACK_IN_SERVICE, vehicle.id, None, self.clock)
