import logging
from typing import List, Optional, Sequence

from errors import AdvisoryUnavailable
from models import (
    AdvisoryCandidate,
    AdvisoryRequest,
    Ambulance,
    CandidateScore,
    DispatchFailure,
    DispatchResult,
    DispatchSelection,
    DispatchSource,
    Incident,
    VehicleType,
)
from services.advisory import AdvisoryProvider
from utils.geo import distance_km, eta_minutes

logger = logging.getLogger(__name__)


def _type_suitable(incident: Incident, vehicle: Ambulance) -> bool:
    if incident.priority.needs_advanced_support:
        return vehicle.vehicle_type == VehicleType.ALS
    return True


def rank_candidates(incident: Incident, vehicles: Sequence[Ambulance]) -> List[CandidateScore]:
    """
    Score each vehicle by great-circle distance to the incident, nearest first.
    Python's sort is stable, so equal distances keep roster order.
    """
    scores = []
    for vehicle in vehicles:
        dist_km = distance_km(vehicle.location, incident.location)
        scores.append(
            CandidateScore(
                vehicle_id=vehicle.id,
                distance_km=dist_km,
                eta_minutes=eta_minutes(dist_km),
                type_suitable=_type_suitable(incident, vehicle),
            )
        )
    scores.sort(key=lambda s: s.distance_km)
    return scores


def select_nearest(incident: Incident, vehicles: Sequence[Ambulance]) -> DispatchResult:
    if not vehicles:
        return DispatchFailure()
    best = rank_candidates(incident, vehicles)[0]
    rationale = (
        f"Advisory dispatch unavailable. Fallback: dispatched closest unit "
        f"({best.vehicle_id}, {best.distance_km:.2f} km, ETA {best.eta_minutes} min)."
    )
    if not best.type_suitable:
        rationale += f" {incident.priority.value} priority calls for Advanced Life Support; none was closer."
    return DispatchSelection(vehicle_id=best.vehicle_id, rationale=rationale, source=DispatchSource.FALLBACK)


def build_advisory_request(incident: Incident, vehicles: Sequence[Ambulance]) -> AdvisoryRequest:
    # Only id, position and capability tier leave the process.
    return AdvisoryRequest(
        incident_location=incident.location,
        incident_priority=incident.priority,
        incident_description=incident.description,
        candidates=[
            AdvisoryCandidate(id=v.id, location=v.location, vehicle_type=v.vehicle_type)
            for v in vehicles
        ],
    )


class DispatchPolicy:
    """
    Picks the vehicle for an incident.

    The advisory provider is consulted first when one is configured. Its answer
    is only used when the chosen id is one of the candidates; any provider
    failure or invalid id falls through to `select_nearest`, so a dispatch
    always succeeds while at least one vehicle is available.
    """

    def __init__(self, advisor: Optional[AdvisoryProvider] = None):
        self.advisor = advisor

    def select_vehicle(
        self,
        incident: Incident,
        available: Sequence[Ambulance],
        use_advisory: bool = True,
    ) -> DispatchResult:
        if not available:
            logger.warning("DISPATCH_FAILED incident=%s reason=no_vehicles", incident.id)
            return DispatchFailure()

        if use_advisory and self.advisor is not None:
            try:
                advice = self.advisor.advise(build_advisory_request(incident, available))
            except AdvisoryUnavailable as exc:
                logger.warning("ADVISORY_FAILED incident=%s error=%s", incident.id, exc)
            except Exception as exc:
                # Any other provider error also falls back.
                logger.warning("ADVISORY_FAILED incident=%s error=%r", incident.id, exc, exc_info=True)
            else:
                if any(v.id == advice.best_vehicle_id for v in available):
                    return DispatchSelection(
                        vehicle_id=advice.best_vehicle_id,
                        rationale=advice.reasoning,
                        source=DispatchSource.ADVISORY,
                    )
                logger.warning(
                    "ADVISORY_INVALID incident=%s vehicle=%s not among candidates",
                    incident.id,
                    advice.best_vehicle_id,
                )

        return select_nearest(incident, available)
