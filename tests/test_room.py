import math

import numpy as np
import pytest

from swarm_evac.model.errors import (
    ConfigurationError,
    DisconnectedRegionError,
    MalformedGeometryError,
    OutOfBoundsError,
)
from swarm_evac.model.geometry import Segment, segment_intersects
from swarm_evac.model.room import OUTSIDE, Room


def test_grid_is_eight_connected():
    room = Room((0.0, 0.0), (2.0, 2.0), 1.0)
    assert (room.nx, room.ny) == (3, 3)
    assert room.num_cells == 9
    # 6 horizontal + 6 vertical + 4 + 4 diagonals
    assert len(room.edges) == 20
    centre = room.cell_at((1.0, 1.0))
    assert len(room.neighbors(centre)) == 8
    corner = room.cell_at((0.0, 0.0))
    assert len(room.neighbors(corner)) == 3


def test_invalid_construction():
    with pytest.raises(ConfigurationError):
        Room((0.0, 0.0), (10.0, 10.0), 0.0)
    with pytest.raises(ConfigurationError):
        Room((10.0, 0.0), (0.0, 10.0), 1.0)
    with pytest.raises(ConfigurationError):
        Room((0.0, 0.0), (10.0, 10.0), 1.0, distance_exponent=1.5)


def test_position_lookup_and_sentinel():
    room = Room((0.0, 0.0), (10.0, 10.0), 1.0)
    assert np.allclose(room.coords[room.cell_at((3.4, 6.6))], [3.0, 7.0])
    assert room.find_cell((10.5, 5.0)) == OUTSIDE
    assert room.find_cell((float('nan'), 5.0)) == OUTSIDE
    with pytest.raises(OutOfBoundsError):
        room.cell_at((-0.5, 5.0))


def test_setup_errors():
    room = Room((0.0, 0.0), (10.0, 10.0), 1.0)
    with pytest.raises(OutOfBoundsError):
        room.add_exit((11.0, 5.0))
    with pytest.raises(OutOfBoundsError):
        room.add_wall(Segment(5.0, 5.0, 12.0, 5.0))
    with pytest.raises(MalformedGeometryError):
        room.add_wall(Segment(5.0, 5.0, 5.0, 5.0))
    with pytest.raises(MalformedGeometryError):
        room.add_wall(Segment(5.0, 5.0, float('inf'), 5.0))
    with pytest.raises(ConfigurationError):
        room.update_exit_distances()


def test_open_field_labels_match_euclidean(open_room):
    assert open_room.raw_exit_distance((50.0, 25.0)) == 0.0
    assert open_room.exit_distance((50.0, 25.0)) == 0.0

    previous = 0.0
    for x in range(49, -1, -1):
        distance = open_room.raw_exit_distance((float(x), 25.0))
        assert distance > previous
        assert abs(distance - (50.0 - x)) <= open_room.fineness
        previous = distance


def test_labels_are_compressed(open_room):
    raw = open_room.raw_exit_distance((10.0, 25.0))
    assert open_room.exit_distance((10.0, 25.0)) == pytest.approx(raw ** 0.75)


def test_gradient_points_to_exit(open_room):
    gradient = open_room.get_gradient((25.0, 25.0))
    assert gradient[0] > 0
    assert abs(gradient[1]) < 1e-9

    upper = open_room.get_gradient((40.0, 40.0))
    assert upper[0] > 0 and upper[1] < 0


def test_outside_queries_use_sentinel_values(open_room):
    assert np.array_equal(open_room.get_gradient((60.0, 25.0)), np.zeros(2))
    assert math.isinf(open_room.exit_distance((60.0, 25.0)))
    assert math.isinf(open_room.get_distance_between((60.0, 25.0), (10.0, 10.0)))
    assert np.array_equal(open_room.get_gradient_between((60.0, 25.0), (10.0, 10.0)), np.zeros(2))


def test_wall_removes_exactly_the_crossing_edges():
    room = Room((0.0, 0.0), (10.0, 10.0), 1.0)
    wall = Segment(2.5, 1.5, 6.5, 7.5)
    room.add_wall(wall)

    extended = wall.extended(room.fineness)
    segments = room.edge_segments(np.arange(len(room.edges)))
    for alive, row in zip(room.edge_alive, segments):
        crosses = segment_intersects(extended, Segment(*row))
        assert alive != crosses

    assert not room.edge_alive.all()
    assert len(room.edges_as_array()) == int(room.edge_alive.sum())
    assert np.allclose(room.walls_as_array(), [[2.5, 1.5, 6.5, 7.5]])


def test_wall_forces_detour():
    room = Room((0.0, 0.0), (10.0, 10.0), 1.0)
    room.add_exit((10.0, 5.0))
    room.add_wall(Segment(5.0, 0.0, 5.0, 8.0))
    room.update_exit_distances()

    assert room.raw_exit_distance((0.0, 5.0)) > 11.0
    # The far side of the wall still sees the exit directly
    assert room.raw_exit_distance((8.0, 5.0)) == pytest.approx(2.0)


def test_disconnected_region_is_fatal():
    room = Room((0.0, 0.0), (10.0, 10.0), 1.0)
    room.add_exit((10.0, 5.0))
    room.add_wall(Segment(5.0, 0.0, 5.0, 10.0))
    with pytest.raises(DisconnectedRegionError):
        room.update_exit_distances()


def test_mutation_after_labelling_relabels_lazily(small_room):
    assert small_room.raw_exit_distance((0.0, 5.0)) == pytest.approx(10.0)
    version = small_room.version
    small_room.add_wall(Segment(5.0, 0.0, 5.0, 8.0))
    assert small_room.version == version + 1
    assert small_room.raw_exit_distance((0.0, 5.0)) > 11.0


def test_distance_between_with_line_of_sight(open_room):
    assert open_room.get_distance_between((10.0, 10.0), (13.0, 14.0)) == pytest.approx(5.0)
    assert open_room.targets_computed == 0


def test_distance_between_is_memoised_per_target():
    room = Room((0.0, 0.0), (10.0, 10.0), 1.0)
    room.add_exit((10.0, 5.0))
    room.add_wall(Segment(5.0, 0.0, 5.0, 8.0))
    room.update_exit_distances()

    first = room.get_distance_between((3.0, 5.0), (7.0, 5.0))
    assert first > 4.0
    assert room.targets_computed == 1
    second = room.get_distance_between((2.0, 4.0), (7.0, 5.0))
    assert second > math.hypot(5.0, 1.0)
    assert room.targets_computed == 1


def test_gradient_between_goes_around_walls():
    room = Room((0.0, 0.0), (10.0, 10.0), 1.0)
    room.add_exit((10.0, 5.0))
    room.add_wall(Segment(5.0, 0.0, 5.0, 8.0))
    room.update_exit_distances()

    direction = room.get_gradient_between((3.0, 5.0), (7.0, 5.0))
    assert np.linalg.norm(direction) == pytest.approx(1.0)
    assert direction[1] > 0

    straight = room.get_gradient_between((6.0, 2.0), (9.0, 6.0))
    assert np.allclose(straight, [0.6, 0.8])


def test_at_exit(small_room):
    assert small_room.at_exit((9.5, 5.0), 1.0)
    assert not small_room.at_exit((8.0, 5.0), 1.0)


def _random_walls(rng, count):
    walls = []
    while len(walls) < count:
        x1, y1 = rng.uniform(1.0, 11.0, size=2)
        angle = rng.uniform(0.0, math.pi)
        length = rng.uniform(1.0, 4.0)
        x2 = min(max(x1 + length * math.cos(angle), 0.5), 11.5)
        y2 = min(max(y1 + length * math.sin(angle), 0.5), 11.5)
        wall = Segment(x1, y1, x2, y2)
        if wall.length > 0.5:
            walls.append(wall)
    return walls


def _labelled_room(walls):
    room = Room((0.0, 0.0), (12.0, 12.0), 1.0)
    room.add_exit((12.0, 6.0))
    for wall in walls:
        room.add_wall(wall)
    room.update_exit_distances()
    return room


def test_randomised_wall_properties():
    checked = 0
    for seed in range(12):
        rng = np.random.default_rng(seed)
        walls = _random_walls(rng, 4)
        try:
            before = _labelled_room(walls[:-1])
            after = _labelled_room(walls)
        except DisconnectedRegionError:
            continue
        checked += 1

        # Labels never undercut the straight line to the exit
        raw = after.exit_distance_field(raw=True).ravel()
        exit_coords = after.coords[after.exit_cells[0]]
        straight = np.linalg.norm(after.coords - exit_coords, axis=1)
        assert np.all(raw >= straight - 1e-9)

        # Adding a wall never shortens a label
        assert np.all(after.exit_distance_field(raw=True) >=
                      before.exit_distance_field(raw=True) - 1e-9)

        # Pairwise graph distances respect the triangle inequality
        for target in rng.choice(after.num_cells, size=3, replace=False):
            distances = after.distances_to_cell(int(target))
            lower = np.linalg.norm(after.coords - after.coords[target], axis=1)
            finite = np.isfinite(distances)
            assert np.all(distances[finite] >= lower[finite] - 1e-9)

        # Relabelling without changes is idempotent
        labels = after.exit_distance_field()
        gradients = [after.get_gradient(p) for p in [(2.0, 2.0), (6.0, 9.0), (10.0, 3.0)]]
        after.update_exit_distances()
        assert np.array_equal(labels, after.exit_distance_field())
        for p, g in zip([(2.0, 2.0), (6.0, 9.0), (10.0, 3.0)], gradients):
            assert np.array_equal(after.get_gradient(p), g)

    assert checked >= 3


def test_positions_beside_grid_aligned_wall_stay_navigable():
    room = Room((0.0, 0.0), (10.0, 10.0), 1.0)
    room.add_exit((10.0, 5.0))
    room.add_wall(Segment(5.0, 0.0, 5.0, 8.0))
    room.update_exit_distances()

    # The nearest cell sits on the wall and has no edges left
    sealed = room.find_cell((4.7, 3.0))
    assert len(room.neighbors(sealed)) == 0
    assert math.isinf(room.exit_distance_field(raw=True).ravel()[sealed])

    cell = room.locate((4.7, 3.0))
    assert np.allclose(room.coords[cell], [4.0, 3.0])
    assert math.isfinite(room.raw_exit_distance((4.7, 3.0)))
    gradient = room.get_gradient((4.7, 3.0))
    assert np.linalg.norm(gradient) > 0
    assert gradient[1] > 0

    # The other side of the wall snaps to its own side
    assert room.coords[room.locate((5.3, 3.0))][0] == 6.0
    assert math.isfinite(room.get_distance_between((4.7, 3.0), (5.3, 3.0)))


def test_locate_keeps_connected_cells():
    room = Room((0.0, 0.0), (10.0, 10.0), 1.0)
    assert room.locate((3.4, 6.6)) == room.cell_at((3.4, 6.6))
    assert room.locate((-1.0, 5.0)) == OUTSIDE
