"""Error types shared by the detection pipeline and its collaborators."""


class ImageLoadError(Exception):
    """Image file could not be read or decoded into pixels."""


class DetectionError(Exception):
    """Finder pattern detection failed. Returned as a value by the pipeline."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class InsufficientPatternsError(DetectionError):
    def __init__(self, found, needed=3):
        super().__init__(f"Found {found} patterns, need at least {needed}")
        self.found = found
        self.needed = needed


class DegenerateGeometryError(DetectionError):
    """Corner assignment is ambiguous (colinear or doubly same-row clusters)."""


class DeadlineExceededError(DetectionError):
    pass


class DecodeError(Exception):
    """Symbol decoding failed after a successful orientation estimate."""
