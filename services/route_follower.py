from typing import List, NamedTuple, Sequence

from models import Location
from utils.geo import planar_distance, step_toward


class RouteStep(NamedTuple):
    next_position: Location
    remaining_waypoints: List[Location]
    arrived: bool


def nearest_waypoint_index(position: Location, waypoints: Sequence[Location]) -> int:
    # Linear scan; strict comparison keeps the first of equally-near waypoints.
    best_index = 0
    best_distance = float("inf")
    for index, waypoint in enumerate(waypoints):
        distance = planar_distance(position, waypoint)
        if distance < best_distance:
            best_distance = distance
            best_index = index
    return best_index


def advance(position: Location, waypoints: Sequence[Location], step: float) -> RouteStep:
    """
    Move `step` degrees along a waypoint polyline.

    - Fewer than two waypoints means there is no path to follow: arrival is
      reported immediately and the position is left unchanged, so the caller
      falls back to direct movement.
    - The active leg runs from the waypoint nearest to `position` to the one
      after it. If the rest of that leg fits inside the step, the leg is consumed
      and the leftover step is carried onto the remaining polyline. Each carry
      drops at least one waypoint, so the recursion ends within len(waypoints)
      calls and can never overshoot the final waypoint.
    """
    if len(waypoints) < 2:
        return RouteStep(position, list(waypoints), True)

    index = nearest_waypoint_index(position, waypoints)
    target_index = min(index + 1, len(waypoints) - 1)
    target = waypoints[target_index]
    remaining = planar_distance(position, target)

    if remaining <= step:
        rest = list(waypoints[target_index:])
        if len(rest) < 2:
            return RouteStep(target, [], True)
        return advance(target, rest, step - remaining)

    moved, _ = step_toward(position, target, step)
    return RouteStep(moved, list(waypoints[target_index - 1:]), False)


def advance_direct(position: Location, destination: Location, step: float) -> RouteStep:
    """Straight-line fallback when no polyline is available."""
    moved, arrived = step_toward(position, destination, step)
    return RouteStep(moved, [], arrived)
