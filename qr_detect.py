"""
Finder pattern detection on a binary mask.

Rows are scanned for the 1:1:3:1:1 signature, each hit is cross-checked by
scanning its column, and confirmed centres are merged into clusters. The
three most populated clusters are the finder pattern candidates.
"""

import logging
from dataclasses import dataclass
from typing import List, NamedTuple, Optional

import numpy as np

from qr_scan import find_patterns

logger = logging.getLogger(__name__)

# Vertical centre must lie within module_size * CROSS_CHECK_TOLERANCE of the row.
CROSS_CHECK_TOLERANCE = 1.5
CLUSTER_FRACTION = 0.05  # cluster radius as a fraction of max(width, height)
MAX_FINDERS = 3


class Point(NamedTuple):
    x: float
    y: float


@dataclass
class Cluster:
    """Running centroid of absorbed points."""

    x: float
    y: float
    count: int = 1

    def distance_sq(self, point):
        dx = self.x - point.x
        dy = self.y - point.y
        return dx * dx + dy * dy

    def absorb(self, point):
        self.x = (self.x * self.count + point.x) / (self.count + 1)
        self.y = (self.y * self.count + point.y) / (self.count + 1)
        self.count += 1

    @property
    def center(self):
        return Point(self.x, self.y)


# ============================================================================
# CANDIDATE POINTS
# ============================================================================

def find_candidate_points(binary, tolerance_factor=CROSS_CHECK_TOLERANCE) -> List[Point]:
    """
    Scan every row of `binary` and confirm each horizontal hit with a scan
    of its column.

    A row hit at column c is kept when some vertical hit in column c is
    centred within module_size * tolerance_factor of the row; the point is
    (c, vertical centre). Neighbouring rows produce near-duplicate points,
    which clustering merges.
    """
    binary = np.asarray(binary)
    height = binary.shape[0]
    points = []
    columns = {}  # column scans are shared by all rows that hit the same x

    for r in range(height):
        for h_pattern in find_patterns(binary[r]):
            c = h_pattern.position
            if c not in columns:
                columns[c] = find_patterns(binary[:, c])
            tolerance = h_pattern.module_size * tolerance_factor
            for v_pattern in columns[c]:
                if abs(v_pattern.position - r) < tolerance:
                    points.append(Point(float(c), float(v_pattern.position)))
                    break

    logger.debug("Candidate points: %d (%d columns scanned)", len(points), len(columns))
    return points


# ============================================================================
# CLUSTERING
# ============================================================================

def cluster_points(points, tolerance, limit: Optional[int] = MAX_FINDERS) -> List[Cluster]:
    """
    Greedy first-match clustering.

    Each point joins the first cluster (in creation order) whose centroid is
    closer than `tolerance`, otherwise it starts a new cluster. Clusters are
    returned by descending size; equal sizes keep discovery order.
    """
    tolerance_sq = tolerance * tolerance
    clusters = []
    for point in points:
        for cluster in clusters:
            if cluster.distance_sq(point) < tolerance_sq:
                cluster.absorb(point)
                break
        else:
            clusters.append(Cluster(float(point.x), float(point.y)))

    clusters.sort(key=lambda c: -c.count)  # list.sort is stable
    return clusters if limit is None else clusters[:limit]


def find_finder_patterns(binary, tolerance_factor=CROSS_CHECK_TOLERANCE,
                         cluster_fraction=CLUSTER_FRACTION, limit=MAX_FINDERS):
    """Returns (candidate points, top clusters) for a binary mask."""
    binary = np.asarray(binary)
    height, width = binary.shape
    points = find_candidate_points(binary, tolerance_factor)
    clusters = cluster_points(points, max(width, height) * cluster_fraction, limit=limit)
    logger.debug("Clusters: %s", [(round(c.x, 1), round(c.y, 1), c.count) for c in clusters])
    return points, clusters
