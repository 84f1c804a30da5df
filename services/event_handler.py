import logging
from typing import Iterable, List

from errors import InvalidTransition
from models import Incident, IncidentStatus
from services.fleet import FleetEvent, FleetEventKind
from services.ledger import IncidentLedger

logger = logging.getLogger(__name__)


def apply_event(ledger: IncidentLedger, event: FleetEvent) -> Incident | None:
    """
    Mirror one fleet event onto the incident ledger.

    - Vehicle on scene: its incident moves Dispatched -> On Scene.
    - Vehicle at hospital: the incident it carried moves On Scene -> Resolved.
    Other events leave the ledger untouched. Events that no longer match the
    ledger (unknown incident, unexpected status) are logged and skipped.
    """
    if event.kind == FleetEventKind.ARRIVED_ON_SCENE:
        incident = ledger.find(event.incident_id)
        if incident is None or incident.status != IncidentStatus.DISPATCHED:
            logger.debug("EVENT_STALE kind=%s vehicle=%s", event.kind.value, event.vehicle_id)
            return None
        return _safely(ledger.mark_on_scene, incident.id)

    if event.kind == FleetEventKind.ARRIVED_AT_HOSPITAL:
        incident = ledger.active_for_vehicle(event.vehicle_id)
        if incident is None or incident.status != IncidentStatus.ON_SCENE:
            logger.debug("EVENT_STALE kind=%s vehicle=%s", event.kind.value, event.vehicle_id)
            return None
        return _safely(ledger.mark_resolved, incident.id)

    return None


def apply_events(ledger: IncidentLedger, events: Iterable[FleetEvent]) -> List[Incident]:
    updated = []
    for event in events:
        incident = apply_event(ledger, event)
        if incident is not None:
            updated.append(incident)
    return updated


def _safely(transition, incident_id: str) -> Incident | None:
    try:
        return transition(incident_id)
    except InvalidTransition as exc:
        logger.warning("EVENT_REJECTED incident=%s error=%s", incident_id, exc)
        return None
