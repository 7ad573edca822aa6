"""
Luminance conversion for target images.

Reduces RGB(A) target images to single-channel grey images using the
fixed luminosity weights 0.299 R + 0.587 G + 0.114 B. The arithmetic is
delegated to a pluggable backend; every backend implements the same
linear transform.
"""

from enum import Enum
from typing import Callable

import cv2
import numpy as np

from imagetarget.core.base import GreyImage, TargetImage
from imagetarget.core.errors import ConfigurationError, InvalidInputError


LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)


class LuminanceBackend(Enum):
    """Available luminance conversion backends."""
    NUMPY = "numpy"    # weighted sum, truncated to uint8
    OPENCV = "opencv"  # cv2.cvtColor, rounded to uint8


def _luminance_numpy(rgb: np.ndarray) -> np.ndarray:
    grey = rgb.astype(np.float32) @ LUMA_WEIGHTS
    return np.clip(grey, 0, 255).astype(np.uint8)


def _luminance_opencv(rgb: np.ndarray) -> np.ndarray:
    return cv2.cvtColor(np.ascontiguousarray(rgb), cv2.COLOR_RGB2GRAY)


_BACKENDS: dict[LuminanceBackend, Callable[[np.ndarray], np.ndarray]] = {
    LuminanceBackend.NUMPY: _luminance_numpy,
    LuminanceBackend.OPENCV: _luminance_opencv,
}


def get_backend(backend: LuminanceBackend | str) -> LuminanceBackend:
    """Resolve a backend name to a LuminanceBackend."""
    if isinstance(backend, LuminanceBackend):
        return backend
    try:
        return LuminanceBackend(str(backend).lower())
    except ValueError:
        valid = ", ".join(b.value for b in LuminanceBackend)
        raise ConfigurationError(
            f"Unknown luminance backend '{backend}'. Valid backends: {valid}"
        ) from None


def validate_target_image(image: TargetImage) -> None:
    """
    Check that a target image has usable dimensions and buffer.

    Raises:
        InvalidInputError: If dimensions are not positive or do not match
            the buffer, or the buffer is not uint8 grey/RGB/RGBA
    """
    if image.width <= 0 or image.height <= 0:
        raise InvalidInputError(
            f"Image dimensions {image.width}x{image.height} are invalid"
        )
    data = image.data
    if not isinstance(data, np.ndarray) or data.dtype != np.uint8:
        raise InvalidInputError("Image buffer must be a uint8 numpy array")
    if data.ndim not in (2, 3) or (data.ndim == 3 and data.shape[2] not in (3, 4)):
        raise InvalidInputError(
            f"Image buffer shape {data.shape} is not HxW, HxWx3 or HxWx4"
        )
    if data.shape[:2] != (image.height, image.width):
        raise InvalidInputError(
            f"Image buffer shape {data.shape[:2]} does not match declared "
            f"dimensions {image.width}x{image.height}"
        )


def to_grey(
    image: TargetImage,
    backend: LuminanceBackend | str = LuminanceBackend.NUMPY,
) -> GreyImage:
    """
    Convert a target image to a grey image.

    Args:
        image: Validated target image
        backend: Conversion backend

    Returns:
        GreyImage with a uint8 HxW buffer
    """
    validate_target_image(image)
    data = image.data
    if data.ndim == 2:
        grey = data.copy()
    else:
        grey = _BACKENDS[get_backend(backend)](data[:, :, :3])
    return GreyImage(width=image.width, height=image.height, data=grey)
