import asyncio
import contextlib
import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Set

from config import (
    AUTO_INCIDENT_INTERVAL_SECONDS,
    AUTO_INCIDENTS,
    FALLBACK_CENTER,
    FLEET_PATH,
    HOSPITALS_PATH,
    TICK_SECONDS,
)
from errors import InvalidTransition, NoVehiclesAvailable, RouteUnavailable
from models import (
    Ambulance,
    EtaView,
    Hospital,
    Incident,
    IncidentPriority,
    IncidentStatus,
    Location,
    SimulationState,
    VehicleStatus,
)
from services.dispatch_policy import DispatchPolicy, select_nearest
from services.event_handler import apply_events
from services.fleet import FleetStateMachine, RouteRequest, TickResult
from services.incident_generator import IncidentGenerator
from services.ledger import IncidentLedger
from services.route_provider import OsrmRouteProvider
from utils.data_loader import load_fleet, load_hospitals
from utils.geo import distance_km, eta_description, eta_minutes, realtime_eta_minutes

logger = logging.getLogger(__name__)


class Simulation:
    """
    Owns one session: the fleet, the incident ledger and the hospitals.

    All state changes happen on the event loop thread. Ticks run one after the
    other and never await; advisory and route provider calls run in worker
    threads and their results are applied only if still relevant when they land.
    """

    def __init__(
        self,
        policy: DispatchPolicy,
        route_provider: Optional[OsrmRouteProvider] = None,
        tick_seconds: float = TICK_SECONDS,
        auto_incidents: bool = AUTO_INCIDENTS,
        generator_seed: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.policy = policy
        self.route_provider = route_provider
        self.tick_seconds = tick_seconds
        self.auto_incidents = auto_incidents
        self.generator_seed = generator_seed
        self._clock = clock
        self.running = False
        self._task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()
        self.bootstrap()

    # Session

    def bootstrap(self, center: Optional[Location] = None) -> None:
        """Start a fresh session around `center`, or the fallback center when geolocation failed."""
        center = center or Location(lat=FALLBACK_CENTER[0], lng=FALLBACK_CENTER[1])
        self.load(
            load_fleet(str(FLEET_PATH), center),
            load_hospitals(str(HOSPITALS_PATH), center),
            center,
        )

    def load(self, vehicles: Sequence[Ambulance], hospitals: Sequence[Hospital], center: Location) -> None:
        self.center = center
        self.hospitals = list(hospitals)
        self.fleet = FleetStateMachine(vehicles, self.hospitals, tick_seconds=self.tick_seconds)
        self.ledger = IncidentLedger(self._clock)
        self.generator = IncidentGenerator(center, seed=self.generator_seed)
        self._next_generation = AUTO_INCIDENT_INTERVAL_SECONDS
        logger.info("SESSION center=(%.5f, %.5f) vehicles=%d hospitals=%d", center.lat, center.lng, len(vehicles), len(hospitals))

    def state(self) -> SimulationState:
        return SimulationState(
            running=self.running,
            clock_seconds=self.fleet.clock,
            center=self.center,
            auto_incidents=self.auto_incidents,
        )

    # Dispatch

    async def report_incident(
        self,
        location: Location,
        priority: IncidentPriority,
        description: str,
        use_advisory: bool = True,
    ) -> Incident:
        incident = self.ledger.report(location, priority, description)
        return await self._dispatch(incident, use_advisory)

    async def retry_dispatch(self, incident_id: str) -> Incident:
        incident = self.ledger.get(incident_id)
        if incident.status != IncidentStatus.PENDING:
            raise InvalidTransition(f"Incident {incident_id} is {incident.status.value}, not Pending")
        return await self._dispatch(incident, True)

    async def _dispatch(self, incident: Incident, use_advisory: bool) -> Incident:
        fleet, ledger = self.fleet, self.ledger
        candidates = fleet.available()
        result = await asyncio.to_thread(self.policy.select_vehicle, incident, candidates, use_advisory)

        if ledger is not self.ledger:
            logger.debug("DISPATCH_STALE incident=%s session replaced", incident.id)
            return incident

        if result.ok:
            chosen = fleet.find(result.vehicle_id)
            if chosen is None or chosen.status != VehicleStatus.AVAILABLE:
                logger.info("DISPATCH_STALE incident=%s vehicle=%s no longer available", incident.id, result.vehicle_id)
                result = select_nearest(incident, fleet.available())

        if not result.ok:
            logger.warning("NO_VEHICLES incident=%s left pending", incident.id)
            raise NoVehiclesAvailable(incident.id)

        current = ledger.get(incident.id)
        if current.status != IncidentStatus.PENDING:
            return current

        vehicle = fleet.get(result.vehicle_id)
        eta = eta_minutes(distance_km(vehicle.location, current.location))
        # Ledger first: it refuses a unit that still holds an active incident.
        updated = ledger.mark_dispatched(current.id, vehicle.id, eta, result.rationale, result.source)
        fleet.assign(vehicle.id, current)
        logger.info(
            "DISPATCH incident=%s vehicle=%s source=%s eta_min=%d",
            current.id,
            vehicle.id,
            result.source.value,
            eta,
        )
        self._request_routes(fleet, fleet.collect_route_requests())
        return updated

    def archive(self, incident_id: str) -> Incident:
        return self.ledger.archive(incident_id)

    def eta_view(self, vehicle_id: str) -> EtaView:
        vehicle = self.fleet.get(vehicle_id)
        if vehicle.status != VehicleStatus.EN_ROUTE or vehicle.destination is None:
            return EtaView(ambulance_id=vehicle_id, eta_minutes=None, description="Not en route")
        minutes = realtime_eta_minutes(vehicle.location, vehicle.destination)
        return EtaView(ambulance_id=vehicle_id, eta_minutes=minutes, description=eta_description(minutes))

    # Tick loop

    async def step(self) -> TickResult:
        """One complete tick. Contains no await, so ticks can never interleave."""
        result = self.fleet.tick()
        apply_events(self.ledger, result.events)
        self._request_routes(self.fleet, result.route_requests)

        if self.auto_incidents and self.fleet.clock >= self._next_generation:
            self._next_generation += AUTO_INCIDENT_INTERVAL_SECONDS
            self._spawn(self._generate_incident())
        return result

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        self.running = True
        try:
            while self.running:
                started = loop.time()
                await self.step()
                await asyncio.sleep(max(0.0, self.tick_seconds - (loop.time() - started)))
        finally:
            self.running = False

    def start(self) -> bool:
        if self._task is not None and not self._task.done():
            return False
        self.running = True
        self._task = asyncio.get_running_loop().create_task(self.run())
        logger.info("SIMULATION started tick=%.2fs", self.tick_seconds)
        return True

    async def stop(self) -> None:
        self.running = False
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("SIMULATION stopped clock=%.1fs", self.fleet.clock)

    async def drain(self) -> None:
        """Wait for every in-flight route fetch and generated dispatch."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Background work

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def _request_routes(self, fleet: FleetStateMachine, requests: List[RouteRequest]) -> None:
        if self.route_provider is None:
            return
        for request in requests:
            self._spawn(self._fetch_route(fleet, request))

    async def _fetch_route(self, fleet: FleetStateMachine, request: RouteRequest) -> None:
        try:
            path = await asyncio.to_thread(self.route_provider.fetch, request.start, request.destination)
        except RouteUnavailable as exc:
            logger.warning("ROUTE_FAILED vehicle=%s error=%s, continuing on straight line", request.vehicle_id, exc)
            return
        fleet.apply_route(request.vehicle_id, request.destination, path)

    async def _generate_incident(self) -> None:
        if not self.fleet.available():
            return
        report = self.generator.maybe_generate()
        if report is None:
            return
        try:
            await self.report_incident(report.location, report.priority, report.description, use_advisory=False)
        except NoVehiclesAvailable as exc:
            logger.warning("AUTO_INCIDENT_PENDING error=%s", exc)
