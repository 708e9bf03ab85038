"""
Orientation estimate from the three finder pattern clusters.

Corner assignment is a fixed heuristic for near axis-aligned captures: the
clusters are ordered row-major (same row when |dy| < SAME_ROW_THRESHOLD)
and read off as TL / TR / BL. Rotated or skewed symbols are not handled;
configurations the heuristic cannot resolve are reported as
DegenerateGeometryError instead of guessed.
"""

import logging
from dataclasses import dataclass, field
from functools import cmp_to_key
from itertools import combinations
from typing import Any, Optional, Tuple

from qr_detect import Point
from qr_errors import DegenerateGeometryError, DetectionError, InsufficientPatternsError

logger = logging.getLogger(__name__)

SAME_ROW_THRESHOLD = 5.0  # pixels
MIN_VERSION, MAX_VERSION = 1, 10
MIN_MODULE_SIZE, MAX_MODULE_SIZE = 1.0, 20.0


@dataclass(frozen=True)
class OrientationEstimate:
    top_left: Point
    top_right: Point
    bottom_left: Point
    module_size: float
    version: int
    dimension: int

    def to_dict(self):
        return {
            'top_left': list(self.top_left),
            'top_right': list(self.top_right),
            'bottom_left': list(self.bottom_left),
            'module_size': self.module_size,
            'version': self.version,
            'dimension': self.dimension,
        }


@dataclass
class DetectionResult:
    """Either an estimate or the error that prevented one, never both."""

    estimate: Optional[OrientationEstimate] = None
    error: Optional[DetectionError] = None
    points: list = field(default_factory=list)
    clusters: list = field(default_factory=list)
    context: Optional[Any] = None  # qr_image.ImageContext of the run

    @property
    def ok(self):
        return self.estimate is not None

    def unwrap(self):
        if self.error is not None:
            raise self.error
        return self.estimate


def dimension_for(version):
    return 17 + 4 * version


def _same_row(a, b, threshold):
    return abs(a.y - b.y) < threshold


def sort_clusters(clusters, same_row_threshold=SAME_ROW_THRESHOLD):
    """Row-major order: by x within a row, otherwise by y."""
    def compare(a, b):
        if _same_row(a, b, same_row_threshold):
            key_a, key_b = a.x, b.x
        else:
            key_a, key_b = a.y, b.y
        return (key_a > key_b) - (key_a < key_b)

    return sorted(clusters, key=cmp_to_key(compare))


def assign_corners(clusters, same_row_threshold=SAME_ROW_THRESHOLD) -> Tuple[Point, Point, Point]:
    """Returns (top_left, top_right, bottom_left) for exactly three clusters."""
    if len(clusters) != 3:
        raise ValueError(f"Expected 3 clusters, got {len(clusters)}")

    same_row_pairs = sum(1 for a, b in combinations(clusters, 2)
                         if _same_row(a, b, same_row_threshold))
    if same_row_pairs >= 2:
        raise DegenerateGeometryError(
            f"{same_row_pairs} cluster pairs share a row, corners are ambiguous")

    first, second, third = sort_clusters(clusters, same_row_threshold)
    if _same_row(first, second, same_row_threshold):
        tl, tr, bl = first, second, third
    else:
        tl, bl, tr = first, second, third

    tl, tr, bl = Point(tl.x, tl.y), Point(tr.x, tr.y), Point(bl.x, bl.y)
    if tr.x - tl.x <= 0 or bl.y - tl.y <= 0:
        raise DegenerateGeometryError(
            f"Cannot place corners TL={tl} TR={tr} BL={bl}")
    return tl, tr, bl


def estimate_version(avg_distance):
    """First version whose implied module size is plausible, else version 1."""
    for v in range(MIN_VERSION, MAX_VERSION + 1):
        dimension = dimension_for(v)
        module_size = avg_distance / (dimension - 14)
        if MIN_MODULE_SIZE <= module_size <= MAX_MODULE_SIZE:
            return v, dimension
    return MIN_VERSION, dimension_for(MIN_VERSION)


def estimate_orientation(clusters, same_row_threshold=SAME_ROW_THRESHOLD) -> DetectionResult:
    """
    Build an OrientationEstimate from the clusters returned by
    qr_detect.cluster_points.

    Only the three most populated clusters are used. Failures come back as
    DetectionResult.error.
    """
    clusters = list(clusters)
    if len(clusters) < 3:
        return DetectionResult(error=InsufficientPatternsError(len(clusters)), clusters=clusters)

    top = sorted(clusters, key=lambda c: -c.count)[:3]
    try:
        tl, tr, bl = assign_corners(top, same_row_threshold)
    except DegenerateGeometryError as e:
        return DetectionResult(error=e, clusters=clusters)

    horizontal = tr.x - tl.x
    vertical = bl.y - tl.y
    avg_distance = (horizontal + vertical) / 2

    version, dimension = estimate_version(avg_distance)
    module_size = avg_distance / (dimension - 14)
    logger.debug("Corners TL=%s TR=%s BL=%s -> version %d (%dx%d), module %.2f",
                 tl, tr, bl, version, dimension, dimension, module_size)

    estimate = OrientationEstimate(
        top_left=tl, top_right=tr, bottom_left=bl,
        module_size=module_size, version=version, dimension=dimension,
    )
    return DetectionResult(estimate=estimate, clusters=clusters)
