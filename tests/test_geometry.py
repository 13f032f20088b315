import numpy as np
import pytest

from swarm_evac.model.geometry import (
    Segment,
    first_intersection,
    segment_intersects,
    segments_intersect,
)


def test_crossing_segments_intersect():
    assert segment_intersects(Segment(0, 0, 2, 2), Segment(0, 2, 2, 0))


def test_parallel_segments_do_not_intersect():
    assert not segment_intersects(Segment(0, 0, 2, 0), Segment(0, 1, 2, 1))


def test_touching_endpoint_counts_as_intersection():
    assert segment_intersects(Segment(0, 0, 1, 0), Segment(1, 0, 1, 1))


def test_collinear_overlap_and_gap():
    assert segment_intersects(Segment(0, 0, 2, 0), Segment(1, 0, 3, 0))
    assert not segment_intersects(Segment(0, 0, 1, 0), Segment(2, 0, 3, 0))


def test_segments_intersect_is_vectorised():
    others = np.array([
        [1.0, -1.0, 1.0, 1.0],   # crosses
        [5.0, -1.0, 5.0, 1.0],   # beyond the end
        [0.0, 1.0, 2.0, 1.0],    # parallel
    ])
    result = segments_intersect(Segment(0, 0, 2, 0), others)
    assert result.tolist() == [True, False, False]


def test_extended_segment_grows_at_both_ends():
    extended = Segment(0.0, 0.0, 1.0, 0.0).extended(0.5)
    assert extended == Segment(-0.5, 0.0, 1.5, 0.0)


def test_tangent_is_unit_length():
    tangent = Segment(0.0, 0.0, 3.0, 4.0).tangent
    assert np.allclose(tangent, [0.6, 0.8])


def test_first_intersection_picks_nearest_wall():
    walls = np.array([[3.0, -1.0, 3.0, 1.0], [2.0, -1.0, 2.0, 1.0]])
    fraction, index = first_intersection(np.array([0.0, 0.0]), np.array([4.0, 0.0]), walls)
    assert fraction == pytest.approx(0.5)
    assert index == 1


def test_first_intersection_clear_path():
    walls = np.array([[0.0, 1.0, 4.0, 1.0]])
    assert first_intersection(np.array([0.0, 0.0]), np.array([4.0, 0.0]), walls) is None


def test_first_intersection_collinear_wall():
    walls = np.array([[1.0, 0.0, 3.0, 0.0]])
    fraction, index = first_intersection(np.array([0.0, 0.0]), np.array([4.0, 0.0]), walls)
    assert fraction == pytest.approx(0.25)
    assert index == 0


def test_first_intersection_degenerate_path():
    walls = np.array([[0.0, -1.0, 0.0, 1.0]])
    assert first_intersection(np.array([0.0, 0.0]), np.array([0.0, 0.0]), walls) is None
    assert first_intersection(np.array([0.0, 0.0]), np.array([1.0, 0.0]), np.zeros((0, 4))) is None
