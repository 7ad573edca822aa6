"""
Difference-of-Gaussians feature detection with binary descriptors.

A Detector is built for one image size. It owns per-octave Gaussian
scratch buffers and an ORB descriptor extractor, which is why detectors
are pooled per (width, height) during compilation. Detection itself is
stateless: the scratch buffers are fully overwritten on every call.
"""

import logging
import math

import cv2
import numpy as np
from scipy.ndimage import maximum_filter, minimum_filter

from imagetarget.core.base import FeaturePoint, PyramidLevel
from imagetarget.core.config import DetectorSettings
from imagetarget.core.errors import CompilerStateError, InvalidInputError

logger = logging.getLogger(__name__)


def octave_sizes(width: int, height: int, min_octave_size: int) -> list[tuple[int, int]]:
    """Sizes of the DoG octaves, halving until the shorter side gets too small."""
    sizes = [(width, height)]
    while min(sizes[-1]) // 2 >= min_octave_size:
        w, h = sizes[-1]
        sizes.append((w // 2, h // 2))
    return sizes


def partition_points(
    points: list[FeaturePoint],
) -> tuple[list[FeaturePoint], list[FeaturePoint]]:
    """
    Split points by extremum sign in a single pass.

    Returns:
        Tuple of (maxima_points, minima_points), each in input order
    """
    maxima_points = []
    minima_points = []
    for p in points:
        if p.maxima:
            maxima_points.append(p)
        else:
            minima_points.append(p)
    return maxima_points, minima_points


class Detector:
    """
    DoG extremum detector for images of one fixed size.

    Example:
        >>> detector = Detector(320, 240)
        >>> points = detector.detect(level)
        >>> detector.dispose()
    """

    def __init__(self, width: int, height: int, settings: DetectorSettings | None = None):
        """
        Initialize the detector.

        Args:
            width: Width of the levels this detector accepts
            height: Height of the levels this detector accepts
            settings: Detector settings

        Raises:
            InvalidInputError: If the dimensions are not positive
        """
        if width <= 0 or height <= 0:
            raise InvalidInputError(f"Detector dimensions {width}x{height} are invalid")

        self.width = width
        self.height = height
        self.settings = settings or DetectorSettings()

        s = self.settings.scales_per_octave
        k = 2.0 ** (1.0 / s)
        self.sigmas = [self.settings.base_sigma * k ** i for i in range(s + 3)]
        self.octaves = octave_sizes(width, height, self.settings.min_octave_size)

        self._gaussians: list[np.ndarray] | None = [
            np.empty((len(self.sigmas), h, w), dtype=np.float32)
            for w, h in self.octaves
        ]
        patch = self.settings.descriptor_patch_size
        self._orb = cv2.ORB_create(
            nfeatures=self.settings.max_features,
            nlevels=1,
            edgeThreshold=patch,
            patchSize=patch,
        )
        logger.debug("Created detector %dx%d with %d octaves", width, height, len(self.octaves))

    @property
    def disposed(self) -> bool:
        return self._gaussians is None

    def dispose(self) -> None:
        """Release scratch buffers and the descriptor extractor."""
        self._gaussians = None
        self._orb = None

    def _find_extrema(self, base: np.ndarray) -> list[tuple[float, float, float, float, bool]]:
        """Return candidates as (x, y, sigma, response, maxima) in level coordinates."""
        threshold = self.settings.contrast_threshold
        candidates = []
        octave_image = base
        for o, (w, h) in enumerate(self.octaves):
            if o > 0:
                octave_image = cv2.resize(octave_image, (w, h), interpolation=cv2.INTER_AREA)
            gaussians = self._gaussians[o]
            for i, sigma in enumerate(self.sigmas):
                gaussians[i] = cv2.GaussianBlur(octave_image, (0, 0), sigma)

            dog = gaussians[1:] - gaussians[:-1]
            is_max = (dog == maximum_filter(dog, size=3, mode="nearest")) & (dog > threshold)
            is_min = (dog == minimum_filter(dog, size=3, mode="nearest")) & (dog < -threshold)

            # Only interior scales and pixels have a full 3x3x3 neighbourhood
            border = np.zeros_like(is_max)
            border[1:-1, 1:-1, 1:-1] = True
            sx = self.width / w
            sy = self.height / h
            for mask, maxima in ((is_max & border, True), (is_min & border, False)):
                layers, ys, xs = np.nonzero(mask)
                for layer, y, x in zip(layers, ys, xs):
                    candidates.append((
                        float(x) * sx,
                        float(y) * sy,
                        self.sigmas[layer] * sx,
                        float(dog[layer, y, x]),
                        maxima,
                    ))
        return candidates

    def _orientation(self, image: np.ndarray, x: float, y: float) -> float:
        """Intensity-centroid orientation in radians."""
        r = self.settings.orientation_radius
        cx, cy = int(round(x)), int(round(y))
        x0, x1 = max(0, cx - r), min(self.width, cx + r + 1)
        y0, y1 = max(0, cy - r), min(self.height, cy + r + 1)
        m = cv2.moments(image[y0:y1, x0:x1].astype(np.float32))
        m10 = m["m10"] - (cx - x0) * m["m00"]
        m01 = m["m01"] - (cy - y0) * m["m00"]
        return math.atan2(m01, m10)

    def detect(self, level: PyramidLevel) -> list[FeaturePoint]:
        """
        Detect feature points on one pyramid level.

        Args:
            level: Pyramid level with a uint8 HxW buffer of this detector's size

        Returns:
            Feature points ordered by decreasing response strength

        Raises:
            CompilerStateError: If the detector was disposed
            InvalidInputError: If the level size does not match the detector
        """
        if self.disposed:
            raise CompilerStateError("Detector used after dispose()")
        if (level.width, level.height) != (self.width, self.height) or \
                level.data.shape != (self.height, self.width):
            raise InvalidInputError(
                f"Level {level.width}x{level.height} does not match detector "
                f"{self.width}x{self.height}"
            )

        image = np.ascontiguousarray(level.data, dtype=np.uint8)
        candidates = self._find_extrema(image.astype(np.float32) / 255.0)
        if not candidates:
            return []

        strength = np.array([abs(c[3]) for c in candidates])
        order = np.argsort(-strength, kind="stable")[: self.settings.max_features]

        keypoints = []
        for idx in order:
            x, y, sigma, response, _ = candidates[idx]
            angle = self._orientation(image, x, y)
            keypoints.append(cv2.KeyPoint(
                x, y, 2.0 * sigma, math.degrees(angle) % 360.0,
                abs(response), 0, int(idx),
            ))

        keypoints, descriptors = self._orb.compute(image, keypoints)
        if descriptors is None:
            return []

        points = []
        for kp, desc in zip(keypoints, descriptors):
            x, y, sigma, _, maxima = candidates[kp.class_id]
            points.append(FeaturePoint(
                x=x,
                y=y,
                scale=sigma,
                angle=math.radians(kp.angle),
                maxima=maxima,
                descriptor=desc.copy(),
            ))
        return points
