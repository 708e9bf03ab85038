"""
Raster image container and preprocessing: grayscale + adaptive binarization.

The binary mask uses the same convention as cv2 thresholding: 0 = dark
(foreground), 255 = light (background).
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from qr_errors import DeadlineExceededError, ImageLoadError

logger = logging.getLogger(__name__)

DARK = 0
LIGHT = 255

WINDOW_SIZE = 15
THRESHOLD_BIAS = 10.0
BAND_ROWS = 64


def _readonly(arr):
    arr = np.array(arr, order="C")
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class RasterImage:
    """Decoded pixels, shape (height, width, channels), one byte per channel."""

    width: int
    height: int
    channels: int
    pixels: np.ndarray

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image must be non-empty, got {self.width}x{self.height}")
        if self.channels not in (1, 3, 4):
            raise ValueError(f"Unsupported channel count: {self.channels}")
        if self.pixels.shape != (self.height, self.width, self.channels):
            raise ValueError(
                f"Pixel buffer shape {self.pixels.shape} does not match "
                f"{self.height}x{self.width}x{self.channels}"
            )
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Pixel buffer must be uint8, got {self.pixels.dtype}")
        object.__setattr__(self, "pixels", _readonly(self.pixels))

    @classmethod
    def from_array(cls, arr):
        """Wrap a 2-D (grayscale) or 3-D (h, w, c) uint8 array; uint16 keeps its high byte."""
        arr = np.asarray(arr)
        if arr.ndim == 2:
            arr = arr[:, :, np.newaxis]
        if arr.ndim != 3:
            raise ValueError(f"Expected 2-D or 3-D pixel array, got shape {arr.shape}")
        if arr.dtype == np.uint16:
            arr = (arr >> 8).astype(np.uint8)
        elif arr.dtype != np.uint8:
            raise ValueError(f"Unsupported pixel dtype: {arr.dtype}")
        h, w, c = arr.shape
        return cls(width=w, height=h, channels=c, pixels=np.array(arr))


@dataclass(frozen=True)
class ImageContext:
    """An image together with its derived grayscale map and binary mask."""

    image: RasterImage
    gray: np.ndarray
    binary: np.ndarray

    @property
    def width(self):
        return self.image.width

    @property
    def height(self):
        return self.image.height


# ============================================================================
# IMAGE LOADING
# ============================================================================

def load_image(path):
    """Read an image file with cv2, keeping its channel count."""
    image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ImageLoadError(f"Cannot load {path}")
    try:
        return RasterImage.from_array(image)
    except ValueError as e:
        raise ImageLoadError(f"Cannot use {path}: {e}") from e


def decode_image_bytes(data):
    """Decode encoded image bytes (PNG, JPEG, ...) into a RasterImage."""
    buf = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED) if buf.size else None
    if image is None:
        raise ImageLoadError("Cannot decode image data")
    try:
        return RasterImage.from_array(image)
    except ValueError as e:
        raise ImageLoadError(f"Cannot use image data: {e}") from e


# ============================================================================
# PREPROCESSING
# ============================================================================

def to_grayscale(image):
    """floor((c0 + c1 + c2) / 3) per pixel; alpha is ignored."""
    px = image.pixels
    if image.channels == 1:
        return px[:, :, 0].copy()
    total = px[:, :, :3].sum(axis=2, dtype=np.uint16)
    return (total // 3).astype(np.uint8)


def adaptive_binarize(gray, window=WINDOW_SIZE, bias=THRESHOLD_BIAS,
                      deadline: Optional[float] = None, band_rows=BAND_ROWS):
    """
    Local-mean thresholding: a pixel is dark when it is below
    (mean of the window x window neighbourhood) - bias.

    Neighbours outside the image are left out of the mean (the sample count
    shrinks near borders). Sums come from a float64 cv2.integral image, which
    holds integer sums exactly. `deadline` is a time.monotonic() value checked
    before each band.
    """
    gray = np.ascontiguousarray(gray, dtype=np.uint8)
    h, w = gray.shape
    half = window // 2

    integral = cv2.integral(gray, sdepth=cv2.CV_64F)

    cols = np.arange(w)
    c0 = np.clip(cols - half, 0, w)
    c1 = np.clip(cols + half + 1, 0, w)
    col_counts = c1 - c0

    binary = np.empty((h, w), dtype=np.uint8)
    for top in range(0, h, band_rows):
        if deadline is not None and time.monotonic() > deadline:
            raise DeadlineExceededError(f"Deadline exceeded while thresholding row {top} of {h}")
        rows = np.arange(top, min(top + band_rows, h))
        r0 = np.clip(rows - half, 0, h)
        r1 = np.clip(rows + half + 1, 0, h)

        sums = (integral[r1][:, c1] - integral[r0][:, c1]
                - integral[r1][:, c0] + integral[r0][:, c0])
        counts = (r1 - r0)[:, np.newaxis] * col_counts[np.newaxis, :]
        threshold = sums / counts - bias
        binary[rows] = np.where(gray[rows] < threshold, DARK, LIGHT)

    return binary


def preprocess(image, window=WINDOW_SIZE, bias=THRESHOLD_BIAS, deadline=None):
    """Build the grayscale map and binary mask for `image` (both read-only)."""
    gray = _readonly(to_grayscale(image))
    binary = _readonly(adaptive_binarize(gray, window=window, bias=bias, deadline=deadline))
    logger.debug("Preprocessed %dx%d image: %d dark pixels",
                 image.width, image.height, int(np.count_nonzero(binary == DARK)))
    return ImageContext(image=image, gray=gray, binary=binary)
