"""
Scale pyramids for matching and tracking.

The matching pyramid steps from full resolution down to an image whose
shorter side is ``min_image_pixel_size`` pixels, in steps of a cube root
of two. The tracking pyramid holds a few fixed sizes.
"""

import cv2
import numpy as np

from imagetarget.core.base import GreyImage, PyramidLevel
from imagetarget.core.config import PyramidSettings
from imagetarget.core.errors import InvalidInputError


def matching_scales(width: int, height: int, settings: PyramidSettings) -> list[float]:
    """
    Compute matching pyramid scales, largest first.

    Example:
        >>> [round(s, 3) for s in matching_scales(200, 200, PyramidSettings())]
        [1.0, 0.794, 0.63, 0.5]
    """
    min_scale = settings.min_image_pixel_size / min(width, height)
    scales = []
    c = min_scale
    while c < 0.95:
        scales.append(c)
        c *= settings.scale_step
    scales.append(1.0)
    scales.reverse()
    return scales


def tracking_scales(width: int, height: int, settings: PyramidSettings) -> list[float]:
    """Compute tracking pyramid scales in configured order."""
    min_dimension = min(width, height)
    return [size / min_dimension for size in settings.tracking_sizes]


def resize_level(image: GreyImage, scale: float) -> PyramidLevel:
    """Resample a grey image by ``scale``."""
    if image.data is None:
        raise InvalidInputError("Grey image has no pixel data to resample")
    width = max(1, int(round(image.width * scale)))
    height = max(1, int(round(image.height * scale)))
    if (width, height) == (image.width, image.height):
        data = image.data.copy()
    else:
        interpolation = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR
        data = cv2.resize(image.data, (width, height), interpolation=interpolation)
    return PyramidLevel(width=width, height=height, scale=scale, data=np.ascontiguousarray(data))


class ImagePyramidBuilder:
    """
    Default PyramidBuilder.

    Example:
        >>> builder = ImagePyramidBuilder()
        >>> levels = builder.build_matching_pyramid(grey)
        >>> [(l.width, l.height) for l in levels]
    """

    def __init__(self, settings: PyramidSettings | None = None):
        self.settings = settings or PyramidSettings()

    def _check(self, image: GreyImage) -> None:
        if image.width <= 0 or image.height <= 0:
            raise InvalidInputError(
                f"Image dimensions {image.width}x{image.height} are invalid"
            )

    def build_matching_pyramid(self, image: GreyImage) -> list[PyramidLevel]:
        self._check(image)
        return [
            resize_level(image, s)
            for s in matching_scales(image.width, image.height, self.settings)
        ]

    def build_tracking_pyramid(self, image: GreyImage) -> list[PyramidLevel]:
        self._check(image)
        return [
            resize_level(image, s)
            for s in tracking_scales(image.width, image.height, self.settings)
        ]
