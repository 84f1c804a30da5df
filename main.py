import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, HTTPException

from config import AUTO_START, LOG_LEVEL
from errors import InvalidTransition, NoVehiclesAvailable, UnknownEntity
from models import (
    Ambulance,
    AnalyticsReport,
    EtaView,
    Hospital,
    Incident,
    IncidentReport,
    SessionStart,
    SimulationState,
)
from services.advisory import GeminiAdvisor
from services.analytics import build_report
from services.dispatch_policy import DispatchPolicy
from services.route_provider import OsrmRouteProvider
from services.simulation import Simulation


logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


# One in-memory session per process
simulation = Simulation(
    policy=DispatchPolicy(GeminiAdvisor()),
    route_provider=OsrmRouteProvider(),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if AUTO_START:
        simulation.start()
    yield
    await simulation.stop()


app = FastAPI(title="Ambulance Dispatch Simulation", lifespan=lifespan)


@app.get("/ambulances")
def get_ambulances() -> List[Ambulance]:
    return simulation.fleet.vehicles()


@app.get("/ambulances/{ambulance_id}/eta")
def get_ambulance_eta(ambulance_id: str) -> EtaView:
    try:
        return simulation.eta_view(ambulance_id)
    except UnknownEntity as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@app.get("/hospitals")
def get_hospitals() -> List[Hospital]:
    return simulation.hospitals


@app.get("/incidents")
def get_incidents(active_only: bool = False) -> List[Incident]:
    return simulation.ledger.incidents(active_only=active_only)


@app.get("/analytics")
def get_analytics() -> AnalyticsReport:
    return build_report(simulation.fleet.vehicles(), simulation.ledger.incidents())


@app.post("/session")
def start_session(session: SessionStart) -> SimulationState:
    """
    Consume the one-shot geolocation. A missing location means the client's
    geolocation failed and the fallback center is used.
    """
    simulation.bootstrap(session.location)
    return simulation.state()


@app.post("/incidents")
async def report_incident(report: IncidentReport) -> Incident:
    try:
        return await simulation.report_incident(report.location, report.priority, report.description)
    except NoVehiclesAvailable as exc:
        raise HTTPException(status_code=409, detail={"message": str(exc), "incident_id": exc.incident_id})
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@app.post("/incidents/{incident_id}/dispatch")
async def retry_dispatch(incident_id: str) -> Incident:
    try:
        return await simulation.retry_dispatch(incident_id)
    except UnknownEntity as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except NoVehiclesAvailable as exc:
        raise HTTPException(status_code=409, detail={"message": str(exc), "incident_id": exc.incident_id})
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@app.post("/incidents/{incident_id}/archive")
def archive_incident(incident_id: str) -> Incident:
    try:
        return simulation.archive(incident_id)
    except UnknownEntity as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@app.get("/simulation")
def get_simulation() -> SimulationState:
    return simulation.state()


@app.post("/simulation/start")
async def start_simulation() -> SimulationState:
    simulation.start()
    return simulation.state()


@app.post("/simulation/stop")
async def stop_simulation() -> SimulationState:
    await simulation.stop()
    return simulation.state()


@app.post("/simulation/step")
async def step_simulation() -> SimulationState:
    await simulation.step()
    return simulation.state()
