"""Planar segment geometry used by the room graph and agent movement."""

import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union, Sequence

import numpy as np

# Absolute tolerance for orientation tests (coordinates are in meters)
EPS = 1e-9

PointLike = Union[Sequence[float], np.ndarray]


@dataclass(frozen=True)
class Segment:
    """Closed line segment from (x1, y1) to (x2, y2)."""
    x1: float
    y1: float
    x2: float
    y2: float

    @classmethod
    def from_points(cls, start: PointLike, end: PointLike) -> "Segment":
        return cls(float(start[0]), float(start[1]),
                   float(end[0]), float(end[1]))

    @property
    def start(self) -> np.ndarray:
        return np.array([self.x1, self.y1])

    @property
    def end(self) -> np.ndarray:
        return np.array([self.x2, self.y2])

    @property
    def length(self) -> float:
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)

    @property
    def tangent(self) -> np.ndarray:
        """Unit vector along the segment."""
        return (self.end - self.start) / self.length

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x1, self.y1, self.x2, self.y2))

    def extended(self, distance: float) -> "Segment":
        """Return the segment lengthened by `distance` at both ends."""
        offset = self.tangent * distance
        return Segment.from_points(self.start - offset, self.end + offset)

    def as_array(self) -> np.ndarray:
        return np.array([self.x1, self.y1, self.x2, self.y2])


def _cross(ax, ay, bx, by, cx, cy):
    """Z component of (b - a) x (c - a); sign gives the turn direction."""
    return (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)


def _within_box(ax, ay, bx, by, cx, cy):
    """True where c lies inside the bounding box of segment ab."""
    return ((np.minimum(ax, bx) - EPS <= cx) & (cx <= np.maximum(ax, bx) + EPS) &
            (np.minimum(ay, by) - EPS <= cy) & (cy <= np.maximum(ay, by) + EPS))


def segments_intersect(segment: Segment, others: np.ndarray) -> np.ndarray:
    """
    Test one segment against many.

    `others` is an (n, 4) array of [x1, y1, x2, y2] rows. Segments are
    closed, so touching endpoints and collinear overlaps count as
    intersections. Returns a boolean array of length n.
    """
    others = np.asarray(others, dtype=np.float64).reshape(-1, 4)
    px, py, qx, qy = segment.x1, segment.y1, segment.x2, segment.y2
    ax, ay, bx, by = others[:, 0], others[:, 1], others[:, 2], others[:, 3]

    d1 = _cross(ax, ay, bx, by, px, py)
    d2 = _cross(ax, ay, bx, by, qx, qy)
    d3 = _cross(px, py, qx, qy, ax, ay)
    d4 = _cross(px, py, qx, qy, bx, by)

    proper = (((d1 > EPS) & (d2 < -EPS)) | ((d1 < -EPS) & (d2 > EPS))) & \
             (((d3 > EPS) & (d4 < -EPS)) | ((d3 < -EPS) & (d4 > EPS)))

    touching = ((np.abs(d1) <= EPS) & _within_box(ax, ay, bx, by, px, py)) | \
               ((np.abs(d2) <= EPS) & _within_box(ax, ay, bx, by, qx, qy)) | \
               ((np.abs(d3) <= EPS) & _within_box(px, py, qx, qy, ax, ay)) | \
               ((np.abs(d4) <= EPS) & _within_box(px, py, qx, qy, bx, by))

    return proper | touching


def segment_intersects(a: Segment, b: Segment) -> bool:
    """Convenience wrapper around segments_intersect for a single pair."""
    return bool(segments_intersect(a, b.as_array())[0])


def first_intersection(start: np.ndarray, end: np.ndarray,
                       walls: np.ndarray) -> Optional[Tuple[float, int]]:
    """
    Find the first wall crossed when travelling from `start` to `end`.

    Returns (fraction, wall_index), where `fraction` in [0, 1] locates the
    crossing as start + fraction * (end - start), or None if the path is
    clear. Collinear overlaps report the point where the overlap begins.
    """
    walls = np.asarray(walls, dtype=np.float64).reshape(-1, 4)
    if len(walls) == 0:
        return None

    start = np.asarray(start, dtype=np.float64)
    r = np.asarray(end, dtype=np.float64) - start
    rr = float(r @ r)
    if rr <= EPS * EPS:
        return None

    q = walls[:, :2]
    s = walls[:, 2:] - q
    qp = q - start

    denom = r[0] * s[:, 1] - r[1] * s[:, 0]
    qp_x_s = qp[:, 0] * s[:, 1] - qp[:, 1] * s[:, 0]
    qp_x_r = qp[:, 0] * r[1] - qp[:, 1] * r[0]

    fractions = np.full(len(walls), np.inf)

    crossing = np.abs(denom) > EPS
    with np.errstate(divide='ignore', invalid='ignore'):
        t = np.where(crossing, qp_x_s / denom, np.inf)
        u = np.where(crossing, qp_x_r / denom, np.inf)
    hit = crossing & (t >= -EPS) & (t <= 1 + EPS) & (u >= -EPS) & (u <= 1 + EPS)
    fractions[hit] = np.clip(t[hit], 0.0, 1.0)

    # Parallel walls lying on the path itself
    collinear = ~crossing & (np.abs(qp_x_r) <= EPS * math.sqrt(rr))
    if np.any(collinear):
        t0 = (qp[collinear] @ r) / rr
        t1 = ((qp[collinear] + s[collinear]) @ r) / rr
        lo = np.maximum(np.minimum(t0, t1), 0.0)
        hi = np.minimum(np.maximum(t0, t1), 1.0)
        overlap = np.where(lo <= hi + EPS, lo, np.inf)
        fractions[collinear] = np.minimum(fractions[collinear], overlap)

    index = int(np.argmin(fractions))
    if not np.isfinite(fractions[index]):
        return None
    return float(fractions[index]), index
