import pytest

from qr_detect import Cluster, Point
from qr_errors import DegenerateGeometryError, InsufficientPatternsError
from qr_orient import (DetectionResult, assign_corners, estimate_orientation,
                       estimate_version, sort_clusters)


def clusters_at(*coords, count=1):
    return [Cluster(float(x), float(y), count) for x, y in coords]


def test_axis_aligned_corners():
    result = estimate_orientation(clusters_at((0, 0), (100, 0), (0, 100)))
    assert result.ok and result.error is None
    est = result.estimate
    assert est.top_left == Point(0, 0)
    assert est.top_right == Point(100, 0)
    assert est.bottom_left == Point(0, 100)
    assert 1 <= est.version <= 10
    assert est.dimension == 17 + 4 * est.version
    assert est.module_size == pytest.approx(100 / (est.dimension - 14))


@pytest.mark.parametrize("coords", [
    [(0, 100), (100, 0), (0, 0)],
    [(100, 0), (0, 100), (0, 0)],
    [(0, 0), (0, 100), (100, 0)],
])
def test_corners_independent_of_input_order(coords):
    est = estimate_orientation(clusters_at(*coords)).unwrap()
    assert (est.top_left, est.top_right, est.bottom_left) == (
        Point(0, 0), Point(100, 0), Point(0, 100))


def test_same_row_tolerates_small_tilt():
    tl, tr, bl = assign_corners(clusters_at((10, 12), (110, 8), (9, 111)))
    assert tl == Point(10, 12)
    assert tr == Point(110, 8)
    assert bl == Point(9, 111)


def test_sort_clusters_row_major():
    ordered = sort_clusters(clusters_at((100, 2), (0, 50), (0, 0)))
    assert [(c.x, c.y) for c in ordered] == [(0, 0), (100, 2), (0, 50)]


@pytest.mark.parametrize("n", [0, 1, 2])
def test_too_few_clusters(n):
    clusters = clusters_at(*[(i * 50, i * 50) for i in range(n)])
    result = estimate_orientation(clusters)
    assert not result.ok
    assert result.estimate is None
    assert isinstance(result.error, InsufficientPatternsError)
    assert result.error.found == n
    with pytest.raises(InsufficientPatternsError):
        result.unwrap()


def test_all_same_row_is_degenerate():
    result = estimate_orientation(clusters_at((0, 0), (50, 1), (100, 2)))
    assert result.estimate is None
    assert isinstance(result.error, DegenerateGeometryError)


def test_two_same_row_pairs_is_degenerate():
    # (0, 0)-(50, 4) and (50, 4)-(100, 8) share rows, (0, 0)-(100, 8) does not
    with pytest.raises(DegenerateGeometryError):
        assign_corners(clusters_at((0, 0), (50, 4), (100, 8)))


def test_vertical_column_is_degenerate():
    result = estimate_orientation(clusters_at((0, 0), (0, 50), (0, 100)))
    assert isinstance(result.error, DegenerateGeometryError)


def test_uses_three_most_populated():
    clusters = [Cluster(500.0, 500.0, 1), Cluster(0.0, 0.0, 9),
                Cluster(70.0, 0.0, 8), Cluster(0.0, 70.0, 7)]
    est = estimate_orientation(clusters).unwrap()
    assert est.top_right == Point(70, 0)
    assert est.bottom_left == Point(0, 70)


@pytest.mark.parametrize("avg, expected", [
    (14.0, (1, 21)),      # 14 / 7 = 2.0
    (7.0, (1, 21)),       # exactly 1.0 is accepted
    (140.0, (1, 21)),     # exactly 20.0 is accepted
    (154.0, (2, 25)),     # 154 / 7 = 22 > 20, 154 / 11 = 14
    (3.0, (1, 21)),       # nothing fits: default
    (5000.0, (1, 21)),
])
def test_estimate_version(avg, expected):
    assert estimate_version(avg) == expected


def test_result_to_dict():
    est = estimate_orientation(clusters_at((0, 0), (70, 0), (0, 70))).unwrap()
    d = est.to_dict()
    assert d['top_left'] == [0.0, 0.0]
    assert d['version'] == 1 and d['dimension'] == 21
    assert d['module_size'] == pytest.approx(10.0)


def test_empty_result():
    assert not DetectionResult().ok
