from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from config import HOTSPOT_CELL_DEGREES
from models import (
    Ambulance,
    AmbulanceMetrics,
    AnalyticsMetrics,
    AnalyticsReport,
    HeatmapPoint,
    Incident,
    PeakHourData,
    RankingEntry,
)


_COLUMNS = ["id", "lat", "lng", "hour", "eta", "ambulance_id", "closed", "duration_min"]


def _mean(values: Sequence[float]) -> float:
    return float(sum(values) / len(values)) if values else 0.0


def _percent(part: int, whole: int) -> float:
    return part / whole * 100.0 if whole > 0 else 0.0


def incident_frame(incidents: Sequence[Incident]) -> pd.DataFrame:
    rows = []
    for inc in incidents:
        duration = np.nan
        if inc.is_closed and inc.resolved_at is not None:
            duration = (inc.resolved_at - inc.created_at).total_seconds() / 60.0
        rows.append(
            (
                inc.id,
                inc.location.lat,
                inc.location.lng,
                inc.created_at.hour,
                float(inc.eta_minutes) if inc.eta_minutes is not None else np.nan,
                inc.assigned_ambulance_id,
                inc.is_closed,
                duration,
            )
        )
    frame = pd.DataFrame(rows, columns=_COLUMNS)
    return frame.astype({"lat": float, "lng": float, "hour": int, "eta": float, "closed": bool, "duration_min": float})


def ambulance_metrics(ambulances: Sequence[Ambulance], incidents: Sequence[Incident]) -> Dict[str, AmbulanceMetrics]:
    total = len(incidents)
    by_ambulance: Dict[str, AmbulanceMetrics] = {}
    for amb in ambulances:
        assigned = [i for i in incidents if i.assigned_ambulance_id == amb.id]
        etas = [i.eta_minutes for i in assigned if i.eta_minutes is not None]
        by_ambulance[amb.id] = AmbulanceMetrics(
            ambulance_id=amb.id,
            total_dispatches=len(assigned),
            average_response_time=_mean(etas),
            incidents_resolved=sum(1 for i in assigned if i.is_closed),
            utilization_rate=_percent(len(assigned), total),
        )
    return by_ambulance


def peak_hour_histogram(frame: pd.DataFrame) -> List[PeakHourData]:
    """Incident count and mean ETA for each local hour of day, 0-23."""
    hours = range(24)
    counts = frame.groupby("hour").size().reindex(hours, fill_value=0)
    with_eta = frame.dropna(subset=["eta"])
    eta_means = with_eta.groupby("hour")["eta"].mean().reindex(hours).fillna(0.0)
    return [
        PeakHourData(hour=hour, incident_count=int(counts[hour]), average_response_time=float(eta_means[hour]))
        for hour in hours
    ]


def hotspot_grid(frame: pd.DataFrame, cell: float = HOTSPOT_CELL_DEGREES) -> List[HeatmapPoint]:
    """
    Bucket incidents into cell x cell degree squares. Intensity is the cell count
    over the busiest cell's count, so it lies in [0, 1] and the busiest cell is 1.
    """
    if frame.empty:
        return []
    cells = pd.DataFrame(
        {
            "lat_idx": np.floor(frame["lat"].to_numpy(dtype=float) / cell).astype(int),
            "lng_idx": np.floor(frame["lng"].to_numpy(dtype=float) / cell).astype(int),
        }
    )
    counts = cells.groupby(["lat_idx", "lng_idx"], sort=False).size()
    max_count = int(counts.max())
    points = []
    for (lat_idx, lng_idx), count in counts.items():
        points.append(
            HeatmapPoint(
                lat=lat_idx * cell + cell / 2,
                lng=lng_idx * cell + cell / 2,
                count=int(count),
                intensity=int(count) / max_count if max_count > 0 else 0.0,
            )
        )
    return points


def calculate_analytics(ambulances: Sequence[Ambulance], incidents: Sequence[Incident]) -> AnalyticsMetrics:
    frame = incident_frame(incidents)
    total = len(frame)
    resolved = int(frame["closed"].sum()) if total else 0
    dispatched = int(frame["ambulance_id"].notna().sum()) if total else 0

    etas = frame["eta"].dropna()
    durations = frame["duration_min"].dropna()

    return AnalyticsMetrics(
        total_incidents=total,
        resolved_incidents=resolved,
        average_response_time=float(etas.mean()) if len(etas) else 0.0,
        incident_resolution_rate=_percent(resolved, total),
        dispatch_efficiency=_percent(dispatched, total),
        average_incident_duration=float(durations.mean()) if len(durations) else 0.0,
        by_ambulance=ambulance_metrics(ambulances, incidents),
        peak_hours=peak_hour_histogram(frame),
        incident_heatmap=hotspot_grid(frame),
    )


def ambulance_ranking(metrics: AnalyticsMetrics) -> List[RankingEntry]:
    # 50% resolution ratio, 30% response time (10+ minutes scores nothing), 20% utilization
    ranking = [
        RankingEntry(
            ambulance_id=amb.ambulance_id,
            score=(amb.incidents_resolved / max(1, amb.total_dispatches)) * 50
            + max(0.0, (10 - amb.average_response_time) / 10) * 30
            + (amb.utilization_rate / 100) * 20,
        )
        for amb in metrics.by_ambulance.values()
    ]
    ranking.sort(key=lambda r: r.score, reverse=True)
    return ranking


def peak_incident_hours(peak_hours: Sequence[PeakHourData], top: int = 5) -> List[PeakHourData]:
    return sorted(peak_hours, key=lambda p: p.incident_count, reverse=True)[:top]


def high_incident_zones(heatmap: Sequence[HeatmapPoint], threshold: float = 0.5) -> List[HeatmapPoint]:
    return sorted((p for p in heatmap if p.intensity > threshold), key=lambda p: p.intensity, reverse=True)


def build_report(ambulances: Sequence[Ambulance], incidents: Sequence[Incident]) -> AnalyticsReport:
    metrics = calculate_analytics(ambulances, incidents)
    return AnalyticsReport(
        metrics=metrics,
        ranking=ambulance_ranking(metrics),
        top_peak_hours=peak_incident_hours(metrics.peak_hours),
        high_risk_zones=high_incident_zones(metrics.incident_heatmap),
    )
