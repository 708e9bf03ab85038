"""
Run-length scanning for the 1:1:3:1:1 finder signature along one line.

A line through the middle of a finder pattern reads
dark:light:dark:light:dark with widths 1:1:3:1:1 (in modules).
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

FINDER_RATIO = (1, 1, 3, 1, 1)
FINDER_MODULES = sum(FINDER_RATIO)  # 7
RATIO_TOLERANCE = 0.75
MIN_PATTERN_LENGTH = 7

_RATIO = np.array(FINDER_RATIO, dtype=np.float64)


@dataclass(frozen=True)
class Pattern:
    position: int        # closing transition - run4 - run3 - run2 // 2
    module_size: float
    runs: Tuple[int, int, int, int, int]


def _window_matches(windows):
    """Vectorized ratio test over an (n, 5) array of run lengths."""
    windows = np.asarray(windows, dtype=np.float64)
    total = windows.sum(axis=1)
    unit = total / FINDER_MODULES
    expected = unit[:, np.newaxis] * _RATIO
    max_variance = expected * RATIO_TOLERANCE
    ok = np.all(np.abs(windows - expected) < max_variance, axis=1)
    return ok & np.all(windows > 0, axis=1) & (total >= MIN_PATTERN_LENGTH)


def matches_finder_ratio(runs):
    """True if 5 run lengths fit 1:1:3:1:1 within the 0.75-module tolerance."""
    if len(runs) != 5:
        raise ValueError(f"Expected 5 run lengths, got {len(runs)}")
    return bool(_window_matches([runs])[0])


def run_lengths(line):
    """Split a line into maximal runs of equal values. Returns (ends, lengths)."""
    line = np.asarray(line).ravel()
    if line.size == 0:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64)
    changes = np.flatnonzero(line[1:] != line[:-1]) + 1
    ends = np.append(changes, line.size)
    starts = np.insert(changes, 0, 0)
    return ends, ends - starts


def find_patterns(line) -> List[Pattern]:
    """
    Find every finder signature along `line` (any 1-D sequence of classified
    pixels).

    Each window of 5 consecutive runs is tested once: at the transition that
    closes its last run, or at the end of the line for the final window.
    """
    line = np.asarray(line).ravel()
    if line.size < MIN_PATTERN_LENGTH:
        return []

    ends, runs = run_lengths(line)
    if runs.size < 5:
        return []

    windows = sliding_window_view(runs, 5)
    matched = np.flatnonzero(_window_matches(windows))

    res = []
    for i in matched:
        w = windows[i]
        end = int(ends[i + 4])  # transition index that closed the window
        res.append(Pattern(
            position=end - int(w[4]) - int(w[3]) - int(w[2]) // 2,
            module_size=float(w.sum()) / FINDER_MODULES,
            runs=tuple(int(r) for r in w),
        ))
    return res
