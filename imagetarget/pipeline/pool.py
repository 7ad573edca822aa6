"""
Session-scoped detector pool.

Pyramids of many targets repeatedly produce levels of identical size.
The pool builds one detector per (width, height) and hands it out for
the rest of the compile session, then disposes all of them at once.
"""

import logging
from typing import Callable

from imagetarget.core.base import FeatureDetector
from imagetarget.core.errors import CompilerStateError

logger = logging.getLogger(__name__)

DetectorFactory = Callable[[int, int], FeatureDetector]


class DetectorPool:
    """
    Memoizes detectors by exact image size.

    ``release_all`` must only run once every task holding a detector has
    finished with it; after that the pool is closed.

    Example:
        >>> with DetectorPool(Detector) as pool:
        ...     detector = pool.acquire(320, 240)
        ...     points = detector.detect(level)
    """

    def __init__(self, factory: DetectorFactory):
        self._factory = factory
        self._detectors: dict[tuple[int, int], FeatureDetector] = {}
        self._closed = False
        self.created = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def acquire(self, width: int, height: int) -> FeatureDetector:
        """
        Get the detector for (width, height), creating it on first request.

        Raises:
            CompilerStateError: If the pool was already released
        """
        if self._closed:
            raise CompilerStateError("Detector pool used after release_all()")
        key = (width, height)
        detector = self._detectors.get(key)
        if detector is None:
            detector = self._factory(width, height)
            self._detectors[key] = detector
            self.created += 1
            logger.debug("Pooled new detector for %dx%d", width, height)
        return detector

    def release_all(self) -> None:
        """Dispose every pooled detector and close the pool."""
        for detector in self._detectors.values():
            dispose = getattr(detector, "dispose", None)
            if dispose is not None:
                dispose()
        logger.debug("Released %d pooled detectors", len(self._detectors))
        self._detectors.clear()
        self._closed = True

    def __contains__(self, key: tuple[int, int]) -> bool:
        return key in self._detectors

    def __len__(self) -> int:
        return len(self._detectors)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release_all()
        return False
