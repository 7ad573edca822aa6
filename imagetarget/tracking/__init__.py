"""
Tracking module - Runtime smoothing and tracking record extraction.

This module provides:
- OneEuroFilter: Adaptive low-pass filter for per-frame tracking signals
- Tracking point extraction used to build tracking records
- Track curve (.crv) I/O and offline smoothing

Example:
    >>> from imagetarget.tracking import OneEuroFilter
    >>> f = OneEuroFilter(min_cutoff=0.001, beta=1000)
    >>> for t, pose in stream:
    ...     smoothed = f.filter(t, pose)
"""

from imagetarget.tracking.one_euro import (
    OneEuroFilter,
    smoothing_factor,
    exponential_smoothing,
)
from imagetarget.tracking.extractor import (
    extract_tracking_points,
    build_tracking_record,
)
from imagetarget.tracking.track_io import (
    read_crv_file,
    write_crv_file,
    parse_track_line,
)
from imagetarget.tracking.smoothing import smooth_track

__all__ = [
    "OneEuroFilter",
    "smoothing_factor",
    "exponential_smoothing",
    "extract_tracking_points",
    "build_tracking_record",
    "read_crv_file",
    "write_crv_file",
    "parse_track_line",
    "smooth_track",
]
