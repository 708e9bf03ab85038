"""
Pytest configuration and shared fixtures.

Synthetic symbols are drawn module by module: 1 = dark module.
"""

import numpy as np
import pytest

FINDER = np.array([[1, 1, 1, 1, 1, 1, 1],
                   [1, 0, 0, 0, 0, 0, 1],
                   [1, 0, 1, 1, 1, 0, 1],
                   [1, 0, 1, 1, 1, 0, 1],
                   [1, 0, 1, 1, 1, 0, 1],
                   [1, 0, 0, 0, 0, 0, 1],
                   [1, 1, 1, 1, 1, 1, 1]], dtype=np.uint8)


def finder_modules(size=21):
    """size x size module grid with the three finder patterns and nothing else."""
    m = np.zeros((size, size), dtype=np.uint8)
    for r0, c0 in [(0, 0), (0, size - 7), (size - 7, 0)]:
        m[r0:r0 + 7, c0:c0 + 7] = FINDER
    return m


def render(modules, scale=1, quiet=0):
    """Module grid -> uint8 pixels (dark 0, light 255) with a light quiet zone."""
    px = np.where(modules == 1, 0, 255).astype(np.uint8)
    px = np.kron(px, np.ones((scale, scale), dtype=np.uint8))
    if quiet:
        px = np.pad(px, quiet * scale, constant_values=255)
    return px


@pytest.fixture
def finder_mask():
    """21x21 binary mask (0 = dark) of a version 1 symbol's finder patterns."""
    return render(finder_modules(21))


@pytest.fixture
def symbol_pixels():
    """Version 1 finder layout, 4 px per module, 4-module quiet zone, BGR."""
    gray = render(finder_modules(21), scale=4, quiet=4)
    return np.dstack([gray, gray, gray])
