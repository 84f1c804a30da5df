"""Pytest fixtures for dispatch simulation tests."""

from datetime import datetime, timedelta

import pytest

from models import Ambulance, Hospital, Incident, IncidentPriority, Location, VehicleStatus, VehicleType
from services.dispatch_policy import DispatchPolicy
from services.simulation import Simulation


class FakeClock:
    """Deterministic wall clock; each call advances by `step`."""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 9, 0, 0), step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


class StubRouteProvider:
    def __init__(self, path=None, error=None):
        self.path = path
        self.error = error
        self.calls = []

    def fetch(self, start, end):
        self.calls.append((start, end))
        if self.error is not None:
            raise self.error
        return list(self.path) if self.path is not None else [start, end]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hospitals() -> list:
    return [
        Hospital(id="H-001", name="General Hospital", location=Location(lat=0.0, lng=0.01), total_beds=50, available_beds=35),
        Hospital(id="H-002", name="City Medical Center", location=Location(lat=1.0, lng=1.0), total_beds=40, available_beds=28),
    ]


@pytest.fixture
def vehicle() -> Ambulance:
    return Ambulance(id="AMB-001", location=Location(lat=0.0, lng=0.0), vehicle_type=VehicleType.ALS, capacity=2)


@pytest.fixture
def incident() -> Incident:
    return Incident(
        id="INC-1",
        location=Location(lat=0.0, lng=0.002),
        priority=IncidentPriority.HIGH,
        description="Chest pain",
        created_at=datetime(2026, 3, 2, 9, 0, 0),
    )


@pytest.fixture
def two_vehicles() -> list:
    return [
        Ambulance(id="A", location=Location(lat=0.0, lng=0.0), vehicle_type=VehicleType.BLS),
        Ambulance(id="B", location=Location(lat=1.0, lng=1.0), vehicle_type=VehicleType.ALS),
    ]


@pytest.fixture
def simulation(hospitals, fake_clock) -> Simulation:
    """Session with two vehicles near the origin and no external providers."""
    sim = Simulation(policy=DispatchPolicy(), route_provider=None, tick_seconds=1.0, auto_incidents=False, clock=fake_clock)
    sim.load(
        [
            Ambulance(id="AMB-001", location=Location(lat=0.0, lng=0.0), vehicle_type=VehicleType.ALS, capacity=2),
            Ambulance(
                id="AMB-002",
                location=Location(lat=0.5, lng=0.5),
                status=VehicleStatus.AVAILABLE,
                vehicle_type=VehicleType.BLS,
            ),
        ],
        hospitals,
        Location(lat=0.0, lng=0.0),
    )
    return sim
