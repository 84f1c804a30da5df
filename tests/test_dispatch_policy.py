"""Tests for vehicle selection with advisory and fallback strategies."""

from datetime import datetime

import pytest

from errors import AdvisoryUnavailable
from models import (
    AdvisoryResponse,
    Ambulance,
    DispatchFailure,
    DispatchSelection,
    DispatchSource,
    Incident,
    IncidentPriority,
    Location,
    VehicleType,
)
from services.dispatch_policy import DispatchPolicy, build_advisory_request, rank_candidates, select_nearest


def make_incident(lat=0.0, lng=0.01, priority=IncidentPriority.CRITICAL) -> Incident:
    return Incident(
        id="INC-1",
        location=Location(lat=lat, lng=lng),
        priority=priority,
        description="Loss of consciousness",
        created_at=datetime(2026, 3, 2, 14, 30),
    )


class FixedAdvisor:
    def __init__(self, vehicle_id="B", reasoning="Closest ALS unit", error=None):
        self.vehicle_id = vehicle_id
        self.reasoning = reasoning
        self.error = error
        self.requests = []

    def advise(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return AdvisoryResponse(best_vehicle_id=self.vehicle_id, reasoning=self.reasoning)


class TestFallbackStrategy:
    """Deterministic nearest-vehicle selection."""

    def test_selects_nearest(self, two_vehicles):
        """A at the origin wins over B at (1,1) for an incident at (0,0.01)."""
        result = select_nearest(make_incident(), two_vehicles)
        assert isinstance(result, DispatchSelection)
        assert result.vehicle_id == "A"
        assert result.source == DispatchSource.FALLBACK
        assert "A" in result.rationale

    def test_ties_keep_list_order(self):
        """Equidistant vehicles resolve to the first in the list."""
        vehicles = [
            Ambulance(id="X", location=Location(lat=0.0, lng=0.02), vehicle_type=VehicleType.BLS),
            Ambulance(id="Y", location=Location(lat=0.0, lng=0.02), vehicle_type=VehicleType.ALS),
        ]
        assert select_nearest(make_incident(), vehicles).vehicle_id == "X"

    def test_empty_list_fails(self):
        """No vehicles yields a failure result, not an exception."""
        result = select_nearest(make_incident(), [])
        assert isinstance(result, DispatchFailure)
        assert not result.ok

    def test_ranking_order_and_suitability(self, two_vehicles):
        """Ranking is nearest first and flags ALS suitability for critical calls."""
        ranked = rank_candidates(make_incident(), two_vehicles)
        assert [r.vehicle_id for r in ranked] == ["A", "B"]
        assert ranked[0].type_suitable is False
        assert ranked[1].type_suitable is True
        assert ranked[0].eta_minutes >= 1

    def test_rationale_reports_eta_and_tier(self, two_vehicles):
        """The fallback rationale names the ETA and flags a missing ALS unit."""
        critical = select_nearest(make_incident(), two_vehicles)
        assert "ETA 2 min" in critical.rationale
        assert "Advanced Life Support" in critical.rationale
        low = select_nearest(make_incident(priority=IncidentPriority.LOW), two_vehicles)
        assert "Advanced Life Support" not in low.rationale


class TestDispatchPolicy:
    """Advisory-first selection with validated fallback."""

    def test_uses_valid_advisory_choice(self, two_vehicles):
        """A valid advisory id is used with its own reasoning."""
        policy = DispatchPolicy(FixedAdvisor("B", "ALS preferred for critical"))
        result = policy.select_vehicle(make_incident(), two_vehicles)
        assert result.vehicle_id == "B"
        assert result.source == DispatchSource.ADVISORY
        assert result.rationale == "ALS preferred for critical"

    def test_invalid_advisory_id_matches_fallback(self, two_vehicles):
        """An id outside the candidate set yields exactly the fallback selection."""
        incident = make_incident()
        policy = DispatchPolicy(FixedAdvisor("AMB-999"))
        assert policy.select_vehicle(incident, two_vehicles) == select_nearest(incident, two_vehicles)

    def test_advisory_failure_falls_back(self, two_vehicles):
        """Provider errors are recovered locally."""
        policy = DispatchPolicy(FixedAdvisor(error=AdvisoryUnavailable("timeout")))
        result = policy.select_vehicle(make_incident(), two_vehicles)
        assert result.vehicle_id == "A"
        assert result.source == DispatchSource.FALLBACK

    def test_unexpected_provider_error_falls_back(self, two_vehicles):
        """Any exception from a provider still yields the fallback choice."""
        incident = make_incident()
        policy = DispatchPolicy(FixedAdvisor(error=RuntimeError("provider crashed")))
        assert policy.select_vehicle(incident, two_vehicles) == select_nearest(incident, two_vehicles)

    def test_no_advisor_configured(self, two_vehicles):
        """Without an advisor the fallback is used directly."""
        assert DispatchPolicy().select_vehicle(make_incident(), two_vehicles).vehicle_id == "A"

    def test_advisory_can_be_skipped(self, two_vehicles):
        """use_advisory=False never calls the provider."""
        advisor = FixedAdvisor("B")
        result = DispatchPolicy(advisor).select_vehicle(make_incident(), two_vehicles, use_advisory=False)
        assert result.vehicle_id == "A"
        assert advisor.requests == []

    def test_empty_candidates_fail_without_consulting_advisor(self):
        """Empty candidate list fails and leaves the incident untouched."""
        advisor = FixedAdvisor("B")
        incident = make_incident()
        before = incident.model_copy()
        result = DispatchPolicy(advisor).select_vehicle(incident, [])
        assert isinstance(result, DispatchFailure)
        assert result.reason == "NoVehiclesAvailable"
        assert advisor.requests == []
        assert incident == before

    def test_advisory_request_carries_only_public_fields(self, two_vehicles):
        """Candidates expose id, location and vehicle type only."""
        request = build_advisory_request(make_incident(), two_vehicles)
        assert request.incident_priority == IncidentPriority.CRITICAL
        dumped = request.candidates[0].model_dump()
        assert set(dumped) == {"id", "location", "vehicle_type"}

    @pytest.mark.parametrize("priority", list(IncidentPriority))
    def test_fallback_is_independent_of_priority(self, two_vehicles, priority):
        """Fallback picks by proximity for every priority."""
        result = DispatchPolicy().select_vehicle(make_incident(priority=priority), two_vehicles)
        assert result.vehicle_id == "A"
