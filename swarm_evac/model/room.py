"""Grid-graph model of the room and its exit-distance navigation field."""

import logging
import math
from collections import deque
from typing import Dict, List, Tuple

import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import connected_components

from .errors import (
    ConfigurationError,
    DisconnectedRegionError,
    FieldInvariantError,
    MalformedGeometryError,
    OutOfBoundsError,
)
from .geometry import EPS, PointLike, Segment, segments_intersect

logger = logging.getLogger(__name__)

# Cell index returned for positions outside the modeled rectangle
OUTSIDE = -1


class Room:
    """
    The room modeled as a grid-shaped graph.

    Walls are simulated by removing every graph edge that crosses them, so
    distances and directions follow the real topology of non-convex spaces
    rather than straight lines.

    Cells live in an arena addressed by integer index (i * ny + j for grid
    column i and row j). Edges are rows of an (m, 2) index array with an
    alive mask. Derived data (exit labels, gradients, per-target distance
    maps) are tagged with `version`, which every wall or exit insertion
    bumps, and are recomputed lazily once stale.
    """

    def __init__(self, min_corner: PointLike, max_corner: PointLike,
                 fineness: float, distance_exponent: float = 0.75):
        xmin, ymin = float(min_corner[0]), float(min_corner[1])
        xmax, ymax = float(max_corner[0]), float(max_corner[1])
        if not (math.isfinite(fineness) and fineness > 0):
            raise ConfigurationError(f"Grid fineness must be positive, got {fineness}")
        if not all(math.isfinite(v) for v in (xmin, ymin, xmax, ymax)):
            raise ConfigurationError("Room corners must be finite")
        if not (xmax > xmin and ymax > ymin):
            raise ConfigurationError(
                f"Room max corner {(xmax, ymax)} must lie above and right of "
                f"min corner {(xmin, ymin)}")
        if not 0 < distance_exponent <= 1:
            raise ConfigurationError(
                f"Distance exponent must be in (0, 1], got {distance_exponent}")

        self.min_corner = np.array([xmin, ymin])
        self.max_corner = np.array([xmax, ymax])
        self.fineness = float(fineness)
        self.distance_exponent = float(distance_exponent)

        self.nx = 1 + int(math.floor((xmax - xmin) / self.fineness + EPS))
        self.ny = 1 + int(math.floor((ymax - ymin) / self.fineness + EPS))

        ii, jj = np.meshgrid(np.arange(self.nx), np.arange(self.ny), indexing='ij')
        self.coords = np.column_stack([
            xmin + ii.ravel() * self.fineness,
            ymin + jj.ravel() * self.fineness,
        ])

        self.edges = self._build_edges()
        self.edge_alive = np.ones(len(self.edges), dtype=bool)
        self.edge_lengths = np.linalg.norm(
            self.coords[self.edges[:, 1]] - self.coords[self.edges[:, 0]], axis=1)

        self.walls: List[Segment] = []
        self.wall_array = np.zeros((0, 4))
        self.exit_points: List[np.ndarray] = []
        self.exit_cells: List[int] = []

        self.version = 0
        self._graph = None
        self._graph_version = -1

        self._raw_exit_distance = np.full(self.num_cells, np.inf)
        self._exit_distance = np.full(self.num_cells, np.inf)
        self._labels_version = -1
        self._gradients = np.zeros((self.num_cells, 2))
        self._gradient_ready = np.zeros(self.num_cells, dtype=bool)

        self._target_distances: Dict[int, Tuple[int, np.ndarray]] = {}
        self.targets_computed = 0

        logger.info("Room graph: %d x %d cells, %d edges",
                    self.nx, self.ny, len(self.edges))

    @property
    def num_cells(self) -> int:
        return len(self.coords)

    def _build_edges(self) -> np.ndarray:
        """Join each cell to its left, top, top-left and bottom-left neighbours."""
        idx = np.arange(self.nx * self.ny).reshape(self.nx, self.ny)
        pairs = [
            (idx[1:, :], idx[:-1, :]),      # left
            (idx[:, 1:], idx[:, :-1]),      # top
            (idx[1:, 1:], idx[:-1, :-1]),   # top-left
            (idx[1:, :-1], idx[:-1, 1:]),   # bottom-left
        ]
        return np.concatenate([
            np.column_stack([a.ravel(), b.ravel()]) for a, b in pairs
        ]).astype(np.int64).reshape(-1, 2)

    # ------------------------------------------------------------------
    # Position lookup
    # ------------------------------------------------------------------

    def contains(self, position: PointLike) -> bool:
        """True if `position` lies inside the bounding rectangle."""
        x, y = float(position[0]), float(position[1])
        return (self.min_corner[0] <= x <= self.max_corner[0] and
                self.min_corner[1] <= y <= self.max_corner[1])

    def find_cell(self, position: PointLike) -> int:
        """Index of the cell nearest to `position`, or OUTSIDE."""
        if not self.contains(position):
            return OUTSIDE
        i = int(math.floor((float(position[0]) - self.min_corner[0]) / self.fineness + 0.5))
        j = int(math.floor((float(position[1]) - self.min_corner[1]) / self.fineness + 0.5))
        return min(i, self.nx - 1) * self.ny + min(j, self.ny - 1)

    def cell_at(self, position: PointLike) -> int:
        """Index of the cell nearest to `position`; raises if it is outside."""
        cell = self.find_cell(position)
        if cell == OUTSIDE:
            raise OutOfBoundsError(
                f"Position {tuple(np.asarray(position, dtype=float))} lies outside "
                f"the room {tuple(self.min_corner)} - {tuple(self.max_corner)}")
        return cell

    def locate(self, position: PointLike) -> int:
        """
        Walkable cell for a runtime position, or OUTSIDE.

        Usually the nearest cell. When that cell has been sealed off by a wall
        lying on the grid lines, the nearest of the four surrounding cells
        that is still joined to the graph and visible from `position` is
        used instead.
        """
        cell = self.find_cell(position)
        if cell == OUTSIDE:
            return OUTSIDE
        indptr = self.adjacency().indptr
        if indptr[cell + 1] > indptr[cell]:
            return cell

        x = (float(position[0]) - self.min_corner[0]) / self.fineness
        y = (float(position[1]) - self.min_corner[1]) / self.fineness
        i0 = min(int(math.floor(x)), self.nx - 1)
        j0 = min(int(math.floor(y)), self.ny - 1)
        best, best_distance = cell, math.inf
        for i in {i0, min(i0 + 1, self.nx - 1)}:
            for j in {j0, min(j0 + 1, self.ny - 1)}:
                candidate = i * self.ny + j
                if indptr[candidate + 1] == indptr[candidate]:
                    continue
                corner = self.coords[candidate]
                if not self.has_line_of_sight(position, corner):
                    continue
                distance = math.hypot(corner[0] - float(position[0]),
                                      corner[1] - float(position[1]))
                if distance < best_distance:
                    best, best_distance = candidate, distance
        return best

    def neighbors(self, cell: int) -> np.ndarray:
        """Indices of cells joined to `cell` by an alive edge."""
        graph = self.adjacency()
        return graph.indices[graph.indptr[cell]:graph.indptr[cell + 1]]

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def add_wall(self, wall: Segment) -> None:
        """Simulate a wall by removing every edge that crosses it."""
        if not wall.is_finite():
            raise MalformedGeometryError(f"Wall {wall} has non-finite coordinates")
        if wall.length < EPS:
            raise MalformedGeometryError(f"Wall {wall} has zero length")
        for point in (wall.start, wall.end):
            if not self.contains(point):
                raise OutOfBoundsError(
                    f"Wall endpoint {tuple(point)} lies outside the room")

        # The extension keeps edges from squeezing past the wall ends
        extended = wall.extended(self.fineness)
        alive = np.flatnonzero(self.edge_alive)
        crossing = segments_intersect(extended, self.edge_segments(alive))
        self.edge_alive[alive[crossing]] = False

        self.walls.append(wall)
        self.wall_array = np.vstack([self.wall_array, wall.as_array()])
        logger.debug("Wall %s removed %d edges", wall, int(crossing.sum()))
        self._mutated()

    def add_exit(self, point: PointLike) -> None:
        """Register the cell nearest to `point` as an exit."""
        point = np.asarray(point, dtype=np.float64).reshape(2)
        cell = self.find_cell(point)
        if cell == OUTSIDE:
            raise OutOfBoundsError(
                f"Tried to place an exit outside of the room at {tuple(point)}")
        self.exit_points.append(point)
        self.exit_cells.append(cell)
        logger.debug("Exit at %s mapped to cell %d", tuple(point), cell)
        self._mutated()

    def _mutated(self) -> None:
        if self._labels_version >= 0:
            logger.warning("Room geometry changed after exit distances were "
                           "labelled; cached distances will be recomputed")
        self.version += 1
        self._target_distances.clear()

    def adjacency(self) -> csr_matrix:
        """Alive edges as a symmetric CSR matrix weighted by edge length."""
        if self._graph_version != self.version:
            edges = self.edges[self.edge_alive]
            weights = self.edge_lengths[self.edge_alive]
            rows = np.concatenate([edges[:, 0], edges[:, 1]])
            cols = np.concatenate([edges[:, 1], edges[:, 0]])
            data = np.concatenate([weights, weights])
            self._graph = csr_matrix((data, (rows, cols)),
                                     shape=(self.num_cells, self.num_cells))
            self._graph_version = self.version
        return self._graph

    # ------------------------------------------------------------------
    # Line of sight and shortest paths
    # ------------------------------------------------------------------

    def has_line_of_sight(self, a: PointLike, b: PointLike) -> bool:
        """True if the straight segment from a to b crosses no wall."""
        if not self.walls:
            return True
        return not segments_intersect(Segment.from_points(a, b), self.wall_array).any()

    def _visible_cells(self, point: np.ndarray) -> np.ndarray:
        """Mask of cells whose straight line to `point` crosses no wall."""
        visible = np.ones(self.num_cells, dtype=bool)
        if not self.walls:
            return visible
        sight_lines = np.hstack([np.broadcast_to(point, self.coords.shape), self.coords])
        for wall in self.walls:
            visible &= ~segments_intersect(wall, sight_lines)
        return visible

    def _shortest_paths(self, seeds: np.ndarray) -> np.ndarray:
        """
        Breadth-first label correction over the alive graph.

        Every cell with a finite seed starts in the queue. A cell's label
        becomes the minimum of its seed and (neighbour label + edge length);
        a cell is queued again whenever its label improves, so the search
        settles on exact shortest-path distances.
        """
        graph = self.adjacency()
        indptr, indices, weights = graph.indptr, graph.indices, graph.data

        dist = np.array(seeds, dtype=np.float64)
        sources = np.flatnonzero(np.isfinite(dist))
        queue = deque(sources[np.argsort(dist[sources], kind='stable')].tolist())
        queued = np.zeros(self.num_cells, dtype=bool)
        queued[sources] = True

        while queue:
            cell = queue.popleft()
            queued[cell] = False
            lo, hi = indptr[cell], indptr[cell + 1]
            if lo == hi:
                continue
            nbrs = indices[lo:hi]
            candidate = dist[cell] + weights[lo:hi]
            better = candidate < dist[nbrs] - EPS
            if not better.any():
                continue
            improved = nbrs[better]
            dist[improved] = candidate[better]
            fresh = improved[~queued[improved]]
            queued[fresh] = True
            queue.extend(fresh.tolist())

        return dist

    def _reachable_cells(self) -> np.ndarray:
        """
        Mask of cells connected to an exit.

        Single cells sealed off by walls count as solid. A region of two or
        more cells with no exit is a configuration error.
        """
        count, labels = connected_components(self.adjacency(), directed=False)
        reachable = np.isin(labels, np.unique(labels[self.exit_cells]))
        sizes = np.bincount(labels, minlength=count)
        stranded = ~reachable & (sizes[labels] > 1)
        if stranded.any():
            regions = np.unique(labels[stranded])
            first = self.coords[np.flatnonzero(stranded)[0]]
            raise DisconnectedRegionError(
                f"{int(stranded.sum())} cells in {len(regions)} region(s) cannot "
                f"reach any exit (first at {tuple(first)})")
        sealed = int((~reachable).sum())
        if sealed:
            logger.debug("%d cells are sealed off by walls", sealed)
        return reachable

    # ------------------------------------------------------------------
    # Exit field
    # ------------------------------------------------------------------

    def update_exit_distances(self) -> None:
        """Label every cell with its (compressed) distance to the nearest exit."""
        if not self.exit_cells:
            raise ConfigurationError("Cannot label exit distances: no exits registered")

        seeds = np.full(self.num_cells, np.inf)
        for cell in self.exit_cells:
            exit_coords = self.coords[cell]
            # Straight-line distance avoids grid aliasing wherever the exit is visible
            euclidean = np.linalg.norm(self.coords - exit_coords, axis=1)
            visible = self._visible_cells(exit_coords)
            seeds = np.where(visible, np.minimum(seeds, euclidean), seeds)
        seeds[self.exit_cells] = 0.0

        raw = self._shortest_paths(seeds)
        raw[~self._reachable_cells()] = np.inf

        self._raw_exit_distance = raw
        # Concave transform so far-away agents are not pulled unrealistically hard
        self._exit_distance = np.power(raw, self.distance_exponent)
        self._gradient_ready[:] = False
        self._labels_version = self.version

        finite = raw[np.isfinite(raw)]
        logger.info("Labelled %d cells from %d exit(s); max distance %.2f",
                    len(finite), len(self.exit_cells),
                    float(finite.max()) if len(finite) else 0.0)

    def _ensure_labels(self) -> None:
        if self._labels_version != self.version:
            if self._labels_version >= 0:
                logger.debug("Exit labels stale (version %d -> %d), relabelling",
                             self._labels_version, self.version)
            self.update_exit_distances()

    def exit_distance(self, position: PointLike) -> float:
        """Compressed exit distance at `position`; inf outside the room."""
        cell = self.locate(position)
        if cell == OUTSIDE:
            return math.inf
        self._ensure_labels()
        return float(self._exit_distance[cell])

    def raw_exit_distance(self, position: PointLike) -> float:
        """Untransformed shortest-path distance to the nearest exit."""
        cell = self.locate(position)
        if cell == OUTSIDE:
            return math.inf
        self._ensure_labels()
        return float(self._raw_exit_distance[cell])

    def exit_distance_field(self, raw: bool = False) -> np.ndarray:
        """Per-cell exit distances as an (nx, ny) array."""
        self._ensure_labels()
        values = self._raw_exit_distance if raw else self._exit_distance
        return values.reshape(self.nx, self.ny).copy()

    def _discrete_gradient(self, cell: int, distances: np.ndarray) -> np.ndarray:
        """Average over neighbours of (neighbour - cell) * (d_cell - d_neighbour)."""
        own = distances[cell]
        nbrs = self.neighbors(cell)
        if not np.isfinite(own) or len(nbrs) == 0:
            return np.zeros(2)
        # Positive where the neighbour is closer to the target
        diffs = own - distances[nbrs]
        finite = np.isfinite(diffs)
        if not finite.any():
            return np.zeros(2)
        offsets = self.coords[nbrs[finite]] - self.coords[cell]
        return (offsets * diffs[finite, None]).sum(axis=0) / finite.sum()

    def get_gradient(self, position: PointLike) -> np.ndarray:
        """Downhill direction of the exit field at `position` (zero outside)."""
        cell = self.locate(position)
        if cell == OUTSIDE:
            return np.zeros(2)
        self._ensure_labels()
        if not self._gradient_ready[cell]:
            self._gradients[cell] = self._discrete_gradient(cell, self._exit_distance)
            self._gradient_ready[cell] = True
        return self._gradients[cell].copy()

    # ------------------------------------------------------------------
    # Point-to-point queries
    # ------------------------------------------------------------------

    def distances_to_cell(self, target: int) -> np.ndarray:
        """Graph distance from every cell to `target`, memoised per target."""
        cached = self._target_distances.get(target)
        if cached is not None and cached[0] == self.version:
            return cached[1]

        target_coords = self.coords[target]
        seeds = np.full(self.num_cells, np.inf)
        visible = self._visible_cells(target_coords)
        seeds[visible] = np.linalg.norm(self.coords[visible] - target_coords, axis=1)
        seeds[target] = 0.0

        distances = self._shortest_paths(seeds)
        self._target_distances[target] = (self.version, distances)
        self.targets_computed += 1
        logger.debug("Computed distances to cell %d (%d targets so far)",
                     target, self.targets_computed)
        return distances

    def get_distance_between(self, source: PointLike, sink: PointLike) -> float:
        """Walking distance from source to sink; inf if either is outside."""
        source_cell = self.locate(source)
        sink_cell = self.locate(sink)
        if source_cell == OUTSIDE or sink_cell == OUTSIDE:
            return math.inf

        # With line of sight the straight line is the shortest path
        if self.has_line_of_sight(self.coords[source_cell], self.coords[sink_cell]):
            return float(np.linalg.norm(np.asarray(sink, dtype=float) -
                                        np.asarray(source, dtype=float)))

        distance = float(self.distances_to_cell(sink_cell)[source_cell])
        straight = float(np.linalg.norm(self.coords[sink_cell] - self.coords[source_cell]))
        if distance < straight - EPS:
            raise FieldInvariantError(
                f"Graph distance {distance:.6f} between cells {source_cell} and "
                f"{sink_cell} is shorter than the straight line {straight:.6f}")
        return distance

    def get_gradient_between(self, source: PointLike, sink: PointLike) -> np.ndarray:
        """Unit vector pointing, along the graph, from source toward sink."""
        source_cell = self.locate(source)
        sink_cell = self.locate(sink)
        if OUTSIDE in (source_cell, sink_cell) or source_cell == sink_cell:
            return np.zeros(2)

        if self.has_line_of_sight(self.coords[source_cell], self.coords[sink_cell]):
            direction = np.asarray(sink, dtype=float) - np.asarray(source, dtype=float)
        else:
            direction = self._discrete_gradient(source_cell, self.distances_to_cell(sink_cell))

        norm = float(np.linalg.norm(direction))
        if norm < EPS:
            return np.zeros(2)
        return direction / norm

    def at_exit(self, position: PointLike, tolerance: float) -> bool:
        """True if `position` is within `tolerance` of any exit point."""
        if not self.exit_points:
            return False
        offsets = np.asarray(self.exit_points) - np.asarray(position, dtype=float)
        return bool((np.linalg.norm(offsets, axis=1) < tolerance).any())

    # ------------------------------------------------------------------
    # Geometry export
    # ------------------------------------------------------------------

    def edge_segments(self, edge_indices: np.ndarray) -> np.ndarray:
        """Selected edges as rows of [x1, y1, x2, y2]."""
        edges = self.edges[edge_indices]
        return np.hstack([self.coords[edges[:, 0]], self.coords[edges[:, 1]]])

    def walls_as_array(self) -> np.ndarray:
        """Walls as a (k, 4) array of [x1, y1, x2, y2]."""
        return self.wall_array.copy()

    def edges_as_array(self) -> np.ndarray:
        """Alive graph edges as a (m, 4) array of [x1, y1, x2, y2]."""
        return self.edge_segments(np.flatnonzero(self.edge_alive))

    def exits_as_array(self) -> np.ndarray:
        """Exact exit points as a (k, 2) array."""
        return np.array(self.exit_points, dtype=float).reshape(-1, 2)

    def __repr__(self) -> str:
        return (f"Room({tuple(self.min_corner)}, {tuple(self.max_corner)}, "
                f"fineness={self.fineness}, walls={len(self.walls)}, "
                f"exits={len(self.exit_cells)})")
