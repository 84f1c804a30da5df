from typing import Optional

import numpy as np

from config import AUTO_INCIDENT_PROBABILITY
from models import IncidentPriority, IncidentReport, Location

DESCRIPTIONS = [
    "Chest pain - possible cardiac event",
    "Traumatic injury - vehicle accident",
    "Difficulty breathing - respiratory distress",
    "Loss of consciousness",
    "Severe allergic reaction",
    "Fall with head injury",
    "Abdominal pain - acute abdomen",
]


class IncidentGenerator:
    """Random incident feed around the session center for unattended runs."""

    def __init__(
        self,
        center: Location,
        probability: float = AUTO_INCIDENT_PROBABILITY,
        spread: float = 0.02,
        seed: Optional[int] = None,
    ):
        self.center = center
        self.probability = probability
        self.spread = spread
        self.rng = np.random.default_rng(seed)

    def maybe_generate(self) -> Optional[IncidentReport]:
        if self.rng.random() >= self.probability:
            return None
        priorities = list(IncidentPriority)
        lat = self.center.lat + (self.rng.random() - 0.5) * self.spread
        lng = self.center.lng + (self.rng.random() - 0.5) * self.spread
        return IncidentReport(
            location=Location(lat=lat, lng=lng),
            priority=priorities[int(self.rng.integers(len(priorities)))],
            description=DESCRIPTIONS[int(self.rng.integers(len(DESCRIPTIONS)))],
        )
