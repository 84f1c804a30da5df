from enum import Enum
from typing import Dict, List, NamedTuple, Optional


class TimerKind(str, Enum):
    LEAVE_SCENE = "leave_scene"
    RETURN_TO_SERVICE = "return_to_service"


class Timer(NamedTuple):
    due: float
    seq: int
    vehicle_id: str
    kind: TimerKind


class TimerRegistry:
    """
    Pending dwell timers, at most one per vehicle.

    Timers carry a kind rather than a callback; the owner decides what firing
    means against the vehicle's state at that moment.
    """

    def __init__(self):
        self._timers: Dict[str, Timer] = {}
        self._seq = 0

    def schedule(self, vehicle_id: str, due: float, kind: TimerKind) -> Timer:
        # Replaces any earlier timer for the same vehicle.
        self._seq += 1
        timer = Timer(due, self._seq, vehicle_id, kind)
        self._timers[vehicle_id] = timer
        return timer

    def cancel(self, vehicle_id: str) -> Optional[Timer]:
        return self._timers.pop(vehicle_id, None)

    def get(self, vehicle_id: str) -> Optional[Timer]:
        return self._timers.get(vehicle_id)

    def pop_due(self, now: float) -> List[Timer]:
        due = sorted(t for t in self._timers.values() if t.due <= now)
        for timer in due:
            del self._timers[timer.vehicle_id]
        return due

    def clear(self) -> None:
        self._timers.clear()

    def __len__(self) -> int:
        return len(self._timers)
