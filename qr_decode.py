#!/usr/bin/env python3
"""
QR finder pattern detection pipeline.
Usage: qr-orient <image_path> [--debug] [--dump-grids] [--timeout=SECONDS]

    image -> grayscale + binary mask -> row/column finder scans
          -> clusters -> orientation estimate

Decoding the symbol itself (sampling, format info, Reed-Solomon) is left to
a SymbolDecoder supplied by the caller.
"""

import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from qr_detect import CLUSTER_FRACTION, CROSS_CHECK_TOLERANCE, MAX_FINDERS, find_finder_patterns
from qr_errors import DecodeError, DetectionError, ImageLoadError
from qr_image import THRESHOLD_BIAS, WINDOW_SIZE, load_image, preprocess
from qr_orient import SAME_ROW_THRESHOLD, DetectionResult, OrientationEstimate, estimate_orientation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectorConfig:
    """Tunables for one detection run."""

    window_size: int = WINDOW_SIZE
    threshold_bias: float = THRESHOLD_BIAS
    cross_check_tolerance: float = CROSS_CHECK_TOLERANCE
    cluster_fraction: float = CLUSTER_FRACTION
    same_row_threshold: float = SAME_ROW_THRESHOLD


# ============================================================================
# DETECTION
# ============================================================================

def detect_orientation(image, config: Optional[DetectorConfig] = None,
                       deadline: Optional[float] = None) -> DetectionResult:
    """
    Run the full detection pipeline on a RasterImage.

    Never raises for a well-formed image: detection failures (too few
    patterns, ambiguous corners, deadline) come back in DetectionResult.error.
    `deadline` is a time.monotonic() value. The preprocessed ImageContext
    is kept on the result for debug output.
    """
    config = config or DetectorConfig()
    try:
        context = preprocess(image, window=config.window_size, bias=config.threshold_bias,
                             deadline=deadline)
    except DetectionError as e:
        logger.warning("Preprocessing aborted: %s", e)
        return DetectionResult(error=e)

    points, clusters = find_finder_patterns(
        context.binary,
        tolerance_factor=config.cross_check_tolerance,
        cluster_fraction=config.cluster_fraction,
        limit=MAX_FINDERS,
    )
    result = estimate_orientation(clusters, same_row_threshold=config.same_row_threshold)
    result.points = points
    result.context = context
    if result.error is not None:
        logger.warning("Detection failed: %s", result.error)
    return result


def timed_detect(image, config=None, timeout=None):
    """Returns (DetectionResult, elapsed milliseconds)."""
    start = time.perf_counter()
    deadline = time.monotonic() + timeout if timeout is not None else None
    result = detect_orientation(image, config=config, deadline=deadline)
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    return result, elapsed_ms


# ============================================================================
# SYMBOL DECODING
# ============================================================================

class SymbolDecoder(Protocol):
    """Turns a located symbol into its payload. Raises DecodeError on failure."""

    def decode(self, estimate: OrientationEstimate, image) -> Union[str, bytes]:
        ...


@dataclass
class DecodeResult:
    payload: Optional[Union[str, bytes]] = None
    error: Optional[Exception] = None
    detection: Optional[DetectionResult] = None

    @property
    def ok(self):
        return self.error is None and self.payload is not None


def decode_symbol(image, decoder: SymbolDecoder, config=None, deadline=None) -> DecodeResult:
    """Locate the symbol, then hand the estimate and the image to `decoder`."""
    detection = detect_orientation(image, config=config, deadline=deadline)
    if not detection.ok:
        return DecodeResult(error=detection.error, detection=detection)
    try:
        payload = decoder.decode(detection.estimate, image)
    except DecodeError as e:
        logger.warning("Decoding failed: %s", e)
        return DecodeResult(error=e, detection=detection)
    if payload is None:
        return DecodeResult(error=DecodeError("Decoder returned no payload"), detection=detection)
    return DecodeResult(payload=payload, detection=detection)


# ============================================================================
# DIAGNOSTIC ENTRY POINT
# ============================================================================

def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    args = [a for a in argv if not a.startswith('--')]
    flags = [a for a in argv if a.startswith('--')]
    usage = "Usage: qr-orient <image_path> [--debug] [--dump-grids] [--timeout=SECONDS]"
    if not args:
        print(usage)
        return 2
    path = args[0]

    timeout = None
    for f in flags:
        if f.startswith('--timeout='):
            try:
                timeout = float(f.split('=', 1)[1])
            except ValueError:
                print(f"Invalid timeout: {f}")
                print(usage)
                return 2

    debug_dir = None
    if '--debug' in flags:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
        base = os.path.splitext(os.path.basename(path))[0]
        debug_dir = os.path.join(os.path.dirname(path) or '.', f"{base}_debug")
        os.makedirs(debug_dir, exist_ok=True)
        print(f"Debug output -> {debug_dir}/")

    print("Loading image...")
    try:
        image = load_image(path)
    except ImageLoadError as e:
        print(f"Error: {e}")
        return 2
    print(f"Image loaded: W={image.width}, H={image.height}, Channels={image.channels}")

    print("Finding finder patterns...")
    result, elapsed_ms = timed_detect(image, timeout=timeout)

    print(f"Total candidate points: {len(result.points)}")
    print(f"Found {len(result.clusters)} finder patterns:")
    for i, c in enumerate(result.clusters):
        print(f"  Pattern {i+1}: position: ({c.x:.1f}, {c.y:.1f}), detected {c.count} times")

    if result.context is not None and '--dump-grids' in flags:
        from qr_debug import format_grid
        print("grayscale")
        print(format_grid(result.context.gray))
        print("binary")
        print(format_grid(result.context.binary))

    if debug_dir and result.context is not None:
        from qr_debug import save_debug_all
        save_debug_all(debug_dir, result.context, result)

    print(f"TOTAL TIME: {elapsed_ms:.3f} ms")
    if not result.ok:
        print(f"Error: {result.error}")
        return 1

    est = result.estimate
    print(f"TL=({est.top_left.x:.1f}, {est.top_left.y:.1f}) "
          f"TR=({est.top_right.x:.1f}, {est.top_right.y:.1f}) "
          f"BL=({est.bottom_left.x:.1f}, {est.bottom_left.y:.1f})")
    print(f"Version: {est.version}, Size: {est.dimension}x{est.dimension}, "
          f"Module: {est.module_size:.2f}px")
    return 0


if __name__ == "__main__":
    sys.exit(main())
