"""Tests for polyline following."""

from models import Location
from services.route_follower import advance, advance_direct, nearest_waypoint_index


def loc(lat, lng):
    return Location(lat=lat, lng=lng)


PATH = [loc(0, 0), loc(0, 1), loc(0, 2)]


class TestAdvance:
    """Stepping along a waypoint polyline."""

    def test_four_half_steps_reach_the_end(self):
        """Step 0.5 over a 2-degree path arrives exactly on the 4th call."""
        position, waypoints = loc(0, 0), PATH
        positions = []
        for call in range(4):
            step = advance(position, waypoints, 0.5)
            position, waypoints = step.next_position, step.remaining_waypoints
            positions.append(step)

        assert [s.arrived for s in positions] == [False, False, False, True]
        assert positions[-1].next_position == loc(0, 2)
        assert positions[-1].remaining_waypoints == []

    def test_never_overshoots(self):
        """No intermediate position passes the final waypoint."""
        position, waypoints = loc(0, 0), PATH
        for _ in range(4):
            step = advance(position, waypoints, 0.5)
            assert step.next_position.lng <= 2.0
            assert step.next_position.lat == 0.0
            position, waypoints = step.next_position, step.remaining_waypoints

    def test_fewer_than_two_waypoints_is_immediate_arrival(self):
        """Empty or single-point paths report arrival without moving."""
        here = loc(0.3, 0.3)
        for waypoints in ([], [loc(5, 5)]):
            for step_size in (0.0001, 10.0):
                step = advance(here, waypoints, step_size)
                assert step.arrived
                assert step.next_position == here

    def test_leftover_step_carries_onto_next_leg(self):
        """A step longer than the current leg continues along the next one."""
        step = advance(loc(0, 0), PATH, 1.5)
        assert not step.arrived
        assert step.next_position.lat == 0.0
        assert abs(step.next_position.lng - 1.5) < 1e-12
        assert step.remaining_waypoints == [loc(0, 1), loc(0, 2)]

    def test_large_step_consumes_whole_path(self):
        """A step longer than the whole path arrives on the last waypoint."""
        step = advance(loc(0, 0), PATH, 100.0)
        assert step.arrived
        assert step.next_position == loc(0, 2)

    def test_turning_path(self):
        """Carry-over follows the corner rather than cutting it."""
        path = [loc(0, 0), loc(0, 1), loc(1, 1)]
        step = advance(loc(0, 0), path, 1.25)
        assert abs(step.next_position.lat - 0.25) < 1e-12
        assert abs(step.next_position.lng - 1.0) < 1e-12

    def test_repeated_waypoints_terminate(self):
        """Duplicate points form zero-length legs that are consumed."""
        path = [loc(0, 0), loc(0, 0), loc(0, 0), loc(0, 0.1)]
        step = advance(loc(0, 0), path, 0.5)
        assert step.arrived
        assert step.next_position == loc(0, 0.1)


class TestNearestWaypoint:
    """Active-leg lookup."""

    def test_tie_goes_to_first(self):
        """Equidistant waypoints resolve to the earlier index."""
        assert nearest_waypoint_index(loc(0, 0.5), PATH) == 0

    def test_closest_index(self):
        """Picks the closest waypoint."""
        assert nearest_waypoint_index(loc(0, 1.9), PATH) == 2


class TestAdvanceDirect:
    """Straight-line fallback."""

    def test_direct_move(self):
        """Moves toward destination without arriving."""
        step = advance_direct(loc(0, 0), loc(1, 0), 0.5)
        assert not step.arrived
        assert step.next_position == loc(0.5, 0)

    def test_direct_arrival_snaps(self):
        """Within one step, lands exactly on the destination."""
        step = advance_direct(loc(0, 0), loc(0.0001, 0.0001), 0.0005)
        assert step.arrived
        assert step.next_position == loc(0.0001, 0.0001)
