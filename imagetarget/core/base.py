"""
Data model and collaborator protocols for image target compilation.

This module defines the records that flow through the compiler and the
protocols the compiler expects from its pyramid, detector and clustering
collaborators.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import numpy as np

from imagetarget.core.errors import InvalidInputError


def check_descriptor(descriptor: np.ndarray) -> np.ndarray:
    """
    Check that a descriptor is a packed binary vector.

    Returns:
        The descriptor as a contiguous 1-D uint8 array

    Raises:
        InvalidInputError: If the descriptor has another dtype or shape
    """
    descriptor = np.asarray(descriptor)
    if descriptor.dtype != np.uint8 or descriptor.ndim != 1:
        raise InvalidInputError(
            f"Descriptor must be a 1-D uint8 array, got {descriptor.dtype} "
            f"with shape {descriptor.shape}"
        )
    return np.ascontiguousarray(descriptor)


@dataclass
class TargetImage:
    """
    One reference image as supplied by the caller.

    Attributes:
        width: Image width in pixels
        height: Image height in pixels
        data: uint8 pixel buffer, HxWx3 (RGB), HxWx4 (RGBA) or HxW
    """
    width: int
    height: int
    data: np.ndarray


@dataclass
class GreyImage:
    """Single-channel luminance image. ``data`` is None once imported from a bundle."""
    width: int
    height: int
    data: np.ndarray | None = None


@dataclass
class PyramidLevel:
    """One rescaled version of a grey image."""
    width: int
    height: int
    scale: float
    data: np.ndarray


@dataclass(eq=False)
class FeaturePoint:
    """
    A detected interest point.

    Coordinates are in the pixel space of the pyramid level the point was
    detected on. ``maxima`` is the extremum sign: True for a local maximum
    of the detector response, False for a local minimum. ``descriptor`` is
    a packed binary vector: a 1-D uint8 array.
    """
    x: float
    y: float
    scale: float
    angle: float
    maxima: bool
    descriptor: np.ndarray = field(repr=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeaturePoint):
            return NotImplemented
        return (
            self.x == other.x
            and self.y == other.y
            and self.scale == other.scale
            and self.angle == other.angle
            and self.maxima == other.maxima
            and np.array_equal(self.descriptor, other.descriptor)
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to plain types for serialization."""
        return {
            "x": float(self.x),
            "y": float(self.y),
            "scale": float(self.scale),
            "angle": float(self.angle),
            "maxima": bool(self.maxima),
            "descriptor": check_descriptor(self.descriptor).tobytes(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeaturePoint":
        return cls(
            x=data["x"],
            y=data["y"],
            scale=data["scale"],
            angle=data["angle"],
            maxima=data["maxima"],
            descriptor=np.frombuffer(data["descriptor"], dtype=np.uint8).copy(),
        )


@dataclass
class Keyframe:
    """
    Matching data for one pyramid level of one target.

    The cluster trees are nested dicts produced by
    ``imagetarget.features.clustering.build_cluster_tree``.
    """
    maxima_points: list[FeaturePoint]
    minima_points: list[FeaturePoint]
    maxima_cluster: dict
    minima_cluster: dict
    width: int
    height: int
    scale: float

    @property
    def num_points(self) -> int:
        return len(self.maxima_points) + len(self.minima_points)

    def to_dict(self) -> dict[str, Any]:
        """Convert to plain types for serialization."""
        return {
            "maxima_points": [p.to_dict() for p in self.maxima_points],
            "minima_points": [p.to_dict() for p in self.minima_points],
            "maxima_cluster": self.maxima_cluster,
            "minima_cluster": self.minima_cluster,
            "width": int(self.width),
            "height": int(self.height),
            "scale": float(self.scale),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Keyframe":
        return cls(
            maxima_points=[FeaturePoint.from_dict(p) for p in data["maxima_points"]],
            minima_points=[FeaturePoint.from_dict(p) for p in data["minima_points"]],
            maxima_cluster=data["maxima_cluster"],
            minima_cluster=data["minima_cluster"],
            width=data["width"],
            height=data["height"],
            scale=data["scale"],
        )


@dataclass
class CompiledTarget:
    """
    Everything compiled for one reference image.

    Attributes:
        width: Width of the grey target image
        height: Height of the grey target image
        matching_data: One Keyframe per matching pyramid level, largest first
        tracking_data: One record per tracking pyramid level
        grey_image: The grey image, only present right after compilation
    """
    width: int
    height: int
    matching_data: list[Keyframe] = field(default_factory=list)
    tracking_data: list[dict[str, Any]] = field(default_factory=list)
    grey_image: GreyImage | None = field(default=None, repr=False, compare=False)


@runtime_checkable
class PyramidBuilder(Protocol):
    """Protocol for objects that decompose a grey image into scale levels."""

    def build_matching_pyramid(self, image: GreyImage) -> list[PyramidLevel]:
        ...

    def build_tracking_pyramid(self, image: GreyImage) -> list[PyramidLevel]:
        ...


@runtime_checkable
class FeatureDetector(Protocol):
    """
    Protocol for feature detectors.

    A detector must be stateless across calls: ``detect(level)`` depends
    only on ``level``, even if scratch buffers are reused internally.
    Descriptors of the returned points must be 1-D uint8 arrays.
    """

    def detect(self, level: PyramidLevel) -> list[FeaturePoint]:
        ...


@runtime_checkable
class ClusterIndexBuilder(Protocol):
    """Protocol for objects that build a cluster tree over feature points."""

    def build(self, points: list[FeaturePoint]) -> dict:
        ...
