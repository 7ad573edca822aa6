"""
Shared fixtures for imagetarget tests.
"""

import cv2
import numpy as np
import pytest


def make_textured_image(width: int, height: int, seed: int = 0) -> np.ndarray:
    """Blocky random RGB texture with plenty of blob-like structure."""
    rng = np.random.default_rng(seed)
    blocks = rng.integers(0, 256, size=(max(height // 8, 1), max(width // 8, 1), 3), dtype=np.uint8)
    image = cv2.resize(blocks, (width, height), interpolation=cv2.INTER_NEAREST)
    return cv2.GaussianBlur(image, (0, 0), 1.5)


def make_points(count: int, seed: int = 0):
    """Random feature points alternating between maxima and minima."""
    from imagetarget.core.base import FeaturePoint

    rng = np.random.default_rng(seed)
    return [
        FeaturePoint(
            x=float(rng.uniform(0, 100)),
            y=float(rng.uniform(0, 100)),
            scale=float(rng.uniform(1, 4)),
            angle=float(rng.uniform(-np.pi, np.pi)),
            maxima=bool(i % 2 == 0),
            descriptor=rng.integers(0, 256, size=32, dtype=np.uint8),
        )
        for i in range(count)
    ]


@pytest.fixture
def textured_image():
    return make_textured_image


@pytest.fixture
def random_points():
    return make_points
