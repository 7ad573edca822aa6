"""
Offline smoothing of recorded track curves with the one-euro filter.

A small command line path for trying filter settings on recorded data
(`imagetarget smooth`); the runtime use of the filter is per-frame pose
smoothing with OneEuroFilter directly.

Frame numbers are turned into millisecond timestamps so the default
filter settings mean the same thing offline as they do at runtime.
"""

from imagetarget.core.config import FilterSettings
from imagetarget.tracking.one_euro import OneEuroFilter


def frame_to_ms(frame: int, fps: float) -> float:
    return frame * 1000.0 / fps


def smooth_track(
    data: dict[int, tuple[float, float]],
    fps: float = 30.0,
    settings: FilterSettings | None = None,
) -> dict[int, tuple[float, float]]:
    """
    Smooth a track curve.

    Args:
        data: Mapping of frame number to (x, y)
        fps: Frame rate used to convert frames to timestamps
        settings: Filter parameters

    Returns:
        New mapping with the same frames and smoothed coordinates
    """
    if fps <= 0:
        raise ValueError(f"fps must be > 0, got {fps}")
    settings = settings or FilterSettings()
    one_euro = OneEuroFilter(
        min_cutoff=settings.min_cutoff,
        beta=settings.beta,
        d_cutoff=settings.d_cutoff,
    )

    smoothed = {}
    for frame in sorted(data):
        x, y = one_euro.filter(frame_to_ms(frame, fps), data[frame])
        smoothed[frame] = (float(x), float(y))
    return smoothed
