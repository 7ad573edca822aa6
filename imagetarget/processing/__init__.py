"""
Processing module - Luminance conversion of target images.
"""

from imagetarget.processing.color import (
    LUMA_WEIGHTS,
    LuminanceBackend,
    get_backend,
    to_grey,
    validate_target_image,
)

__all__ = [
    "LUMA_WEIGHTS",
    "LuminanceBackend",
    "get_backend",
    "to_grey",
    "validate_target_image",
]
