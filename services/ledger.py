import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from errors import InvalidTransition, UnknownEntity
from models import DispatchSource, Incident, IncidentPriority, IncidentStatus, Location

logger = logging.getLogger(__name__)


_NEXT_STATUS = {
    IncidentStatus.PENDING: IncidentStatus.DISPATCHED,
    IncidentStatus.DISPATCHED: IncidentStatus.ON_SCENE,
    IncidentStatus.ON_SCENE: IncidentStatus.RESOLVED,
    IncidentStatus.RESOLVED: IncidentStatus.ARCHIVED,
}

ACTIVE_STATUSES = (IncidentStatus.DISPATCHED, IncidentStatus.ON_SCENE)


def _advance(incident: Incident, target: IncidentStatus, **changes) -> Incident:
    if _NEXT_STATUS.get(incident.status) != target:
        raise InvalidTransition(
            f"Incident {incident.id} cannot move from {incident.status.value} to {target.value}"
        )
    return incident.model_copy(update={"status": target, **changes})


class IncidentLedger:
    """
    Incident lifecycle: Pending -> Dispatched -> On Scene -> Resolved -> Archived.

    Every transition moves exactly one step forward. Incidents are never removed;
    archived ones remain available to analytics.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._incidents: Dict[str, Incident] = {}

    def _new_id(self, created_at: datetime) -> str:
        base = f"INC-{int(created_at.timestamp() * 1000)}"
        incident_id = base
        suffix = 1
        while incident_id in self._incidents:
            suffix += 1
            incident_id = f"{base}-{suffix}"
        return incident_id

    def report(self, location: Location, priority: IncidentPriority, description: str) -> Incident:
        created_at = self._clock()
        incident = Incident(
            id=self._new_id(created_at),
            location=location,
            priority=priority,
            description=description,
            created_at=created_at,
        )
        self._incidents[incident.id] = incident
        logger.info("REPORTED incident=%s priority=%s", incident.id, priority.value)
        return incident

    def get(self, incident_id: str) -> Incident:
        try:
            return self._incidents[incident_id]
        except KeyError:
            raise UnknownEntity(f"Incident {incident_id} not found") from None

    def find(self, incident_id: Optional[str]) -> Optional[Incident]:
        if incident_id is None:
            return None
        return self._incidents.get(incident_id)

    def incidents(self, active_only: bool = False) -> List[Incident]:
        if active_only:
            return [i for i in self._incidents.values() if i.status != IncidentStatus.ARCHIVED]
        return list(self._incidents.values())

    def active_for_vehicle(self, vehicle_id: str) -> Optional[Incident]:
        for incident in self._incidents.values():
            if incident.assigned_ambulance_id == vehicle_id and incident.status in ACTIVE_STATUSES:
                return incident
        return None

    def mark_dispatched(
        self,
        incident_id: str,
        ambulance_id: str,
        eta_minutes: int,
        rationale: Optional[str] = None,
        source: Optional[DispatchSource] = None,
    ) -> Incident:
        incident = self.get(incident_id)
        current = self.active_for_vehicle(ambulance_id)
        if current is not None:
            raise InvalidTransition(f"Ambulance {ambulance_id} is already serving {current.id}")
        updated = _advance(
            incident,
            IncidentStatus.DISPATCHED,
            assigned_ambulance_id=ambulance_id,
            eta_minutes=eta_minutes,
            dispatch_rationale=rationale,
            dispatch_source=source,
        )
        self._incidents[incident_id] = updated
        return updated

    def mark_on_scene(self, incident_id: str) -> Incident:
        updated = _advance(self.get(incident_id), IncidentStatus.ON_SCENE)
        self._incidents[incident_id] = updated
        return updated

    def mark_resolved(self, incident_id: str) -> Incident:
        updated = _advance(self.get(incident_id), IncidentStatus.RESOLVED, resolved_at=self._clock())
        self._incidents[incident_id] = updated
        logger.info("RESOLVED incident=%s", incident_id)
        return updated

    def archive(self, incident_id: str) -> Incident:
        updated = _advance(self.get(incident_id), IncidentStatus.ARCHIVED)
        self._incidents[incident_id] = updated
        return updated
