"""
Tracking record extraction.

Selects well-textured corner points on each tracking pyramid level with
Shi-Tomasi corner detection. The runtime tracker follows these points
with template matching once a target has been recognized.
"""

import cv2
import numpy as np

from imagetarget.core.base import PyramidLevel
from imagetarget.core.config import TrackingSettings


def extract_tracking_points(
    level: PyramidLevel,
    settings: TrackingSettings | None = None,
) -> list[dict[str, float]]:
    """
    Detect tracking points on one level.

    Args:
        level: Tracking pyramid level
        settings: Corner detection parameters

    Returns:
        List of {"x": float, "y": float} in level coordinates, strongest first
    """
    settings = settings or TrackingSettings()
    corners = cv2.goodFeaturesToTrack(
        np.ascontiguousarray(level.data, dtype=np.uint8),
        maxCorners=settings.max_points,
        qualityLevel=settings.quality_level,
        minDistance=settings.min_distance,
        blockSize=settings.block_size,
    )
    if corners is None:
        return []
    return [{"x": float(x), "y": float(y)} for x, y in corners.reshape(-1, 2)]


def build_tracking_record(
    levels: list[PyramidLevel],
    settings: TrackingSettings | None = None,
) -> list[dict]:
    """
    Build the tracking record for one target.

    Each entry keeps the level pixels so the runtime tracker can cut
    templates around the points.
    """
    record = []
    for level in levels:
        record.append({
            "data": np.ascontiguousarray(level.data, dtype=np.uint8).tobytes(),
            "width": int(level.width),
            "height": int(level.height),
            "scale": float(level.scale),
            "points": extract_tracking_points(level, settings),
        })
    return record
