import numpy as np
import pytest

from qr_scan import find_patterns, matches_finder_ratio, run_lengths


def runs_to_line(runs, first=0):
    """Alternating line, starting with value `first` (0 = dark)."""
    values = []
    v = first
    for n in runs:
        values.extend([v] * n)
        v = 255 - v
    return np.array(values, dtype=np.uint8)


@pytest.mark.parametrize("n", [0, 1, 6, 7, 50])
@pytest.mark.parametrize("value", [0, 255])
def test_uniform_line_has_no_patterns(n, value):
    assert find_patterns(np.full(n, value, dtype=np.uint8)) == []


def test_short_line_is_empty():
    assert find_patterns(runs_to_line([1, 1, 2, 1, 1])) == []


def test_unit_signature():
    patterns = find_patterns(runs_to_line([1, 1, 3, 1, 1]))
    assert len(patterns) == 1
    p = patterns[0]
    assert p.module_size == pytest.approx(1.0)
    assert p.position == 4  # 7 - 1 - 1 - 3 // 2
    assert p.runs == (1, 1, 3, 1, 1)


@pytest.mark.parametrize("k", [1, 2, 5, 10])
def test_scaled_signature(k):
    lead = 4
    line = np.concatenate([np.full(lead, 255, dtype=np.uint8),
                           runs_to_line([k, k, 3 * k, k, k])])
    patterns = [p for p in find_patterns(line) if p.runs == (k, k, 3 * k, k, k)]
    assert len(patterns) == 1
    p = patterns[0]
    assert p.module_size == pytest.approx(k)
    middle_start = lead + 2 * k
    assert middle_start <= p.position < middle_start + 3 * k


def test_signature_closed_by_transition():
    # trailing light run closes the window at a transition, not at the end
    line = runs_to_line([1, 1, 3, 1, 1, 1])
    patterns = find_patterns(line)
    assert [p.position for p in patterns] == [4]


@pytest.mark.parametrize("runs, expected", [
    ([3, 3, 9, 3, 3], 21 - 3 - 3 - 4),
    ([2, 2, 5, 2, 2], 13 - 2 - 2 - 2),
    ([2, 2, 6, 2, 2], 14 - 2 - 2 - 3),
])
def test_position_counts_back_from_closing_transition(runs, expected):
    patterns = find_patterns(runs_to_line(runs + [1]))
    assert [p.position for p in patterns] == [expected]


def test_perturbed_middle_run_is_rejected():
    # with four unit outer runs the middle run must stay below 12
    assert find_patterns(runs_to_line([1, 1, 13, 1, 1])) == []
    assert not matches_finder_ratio([1, 1, 13, 1, 1])


def test_middle_run_tolerance_is_relative_to_total():
    # unit = 9 / 7: |5 - 3 * unit| is inside 0.75 * 3 * unit
    assert matches_finder_ratio([1, 1, 5, 1, 1])
    assert matches_finder_ratio([1, 1, 11, 1, 1])


@pytest.mark.parametrize("runs", [
    [3, 1, 3, 1, 1],
    [1, 3, 3, 1, 1],
    [1, 1, 3, 3, 1],
    [1, 1, 3, 1, 3],
])
def test_perturbed_outer_run_is_rejected(runs):
    assert not matches_finder_ratio(runs)


def test_tolerance_accepts_noisy_runs():
    assert matches_finder_ratio([4, 3, 13, 5, 4])


def test_zero_run_is_rejected():
    assert not matches_finder_ratio([0, 2, 3, 1, 1])
    assert not matches_finder_ratio([0, 0, 0, 0, 0])


def test_ratio_needs_five_runs():
    with pytest.raises(ValueError):
        matches_finder_ratio([1, 1, 3, 1])


def test_two_signatures_on_one_line():
    gap = [7]
    line = runs_to_line([1, 1, 3, 1, 1] + gap + [2, 2, 6, 2, 2])
    found = {p.runs: p for p in find_patterns(line)}
    assert found[(1, 1, 3, 1, 1)].position == 4
    assert found[(2, 2, 6, 2, 2)].position == 7 + 7 + 4 + 3
    assert found[(2, 2, 6, 2, 2)].module_size == pytest.approx(2.0)


def test_scans_are_independent():
    line = runs_to_line([2, 2, 6, 2, 2])
    assert find_patterns(line) == find_patterns(line)


def test_run_lengths():
    ends, lengths = run_lengths([0, 0, 255, 255, 255, 0])
    assert ends.tolist() == [2, 5, 6]
    assert lengths.tolist() == [2, 3, 1]
