"""
Image target compilation pipeline.

CompilerBase turns reference images into matching and tracking records:

    canvas hook -> grey image -> matching/tracking pyramids
        -> per-level detection (pooled detectors) -> maxima/minima split
        -> one cluster tree per sign -> tracking hook -> records

Targets are processed as concurrent asyncio tasks; levels within a
target run sequentially with a periodic suspension point so other
targets (and whatever else shares the event loop) can make progress.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable

from imagetarget.core.base import (
    ClusterIndexBuilder,
    CompiledTarget,
    GreyImage,
    Keyframe,
    PyramidBuilder,
    PyramidLevel,
    TargetImage,
    check_descriptor,
)
from imagetarget.core.config import Config
from imagetarget.core.errors import (
    CompilationError,
    CompilerStateError,
    ConfigurationError,
    InvalidInputError,
)
from imagetarget.features.clustering import HierarchicalClusterBuilder
from imagetarget.features.detector import Detector, partition_points
from imagetarget.features.pyramid import ImagePyramidBuilder
from imagetarget.pipeline.pool import DetectorFactory, DetectorPool
from imagetarget.pipeline.progress import ProgressCallback, ProgressReporter, ProgressSlice
from imagetarget.pipeline.serializer import decode_bundle, encode_bundle
from imagetarget.processing.color import get_backend, to_grey

logger = logging.getLogger(__name__)

MATCHING_PERCENT = 50.0


async def cooperative_yield() -> None:
    """Default suspension point: let the event loop run other tasks."""
    await asyncio.sleep(0)


class CompilerBase:
    """
    Base class for image target compilers.

    Subclasses must implement the two lifecycle hooks
    ``create_process_canvas`` and ``compile_track``; constructing a
    subclass that lacks either raises ConfigurationError.

    A compiler instance compiles once. ``data`` holds the records of the
    last compile or import.
    """

    REQUIRED_HOOKS = ("create_process_canvas", "compile_track")

    def __init__(
        self,
        config: Config | None = None,
        pyramid_builder: PyramidBuilder | None = None,
        detector_factory: DetectorFactory | None = None,
        cluster_builder: ClusterIndexBuilder | None = None,
        suspend: Callable[[], Awaitable[None]] = cooperative_yield,
    ):
        """
        Initialize the compiler.

        Args:
            config: Compilation settings (defaults if None)
            pyramid_builder: Builds matching and tracking pyramids
            detector_factory: Called with (width, height) to create a detector
            cluster_builder: Builds cluster trees over feature points
            suspend: Coroutine function awaited at every suspension point

        Raises:
            ConfigurationError: If a required hook is missing or the
                configuration is invalid
        """
        missing = [
            name for name in self.REQUIRED_HOOKS
            if getattr(type(self), name) is getattr(CompilerBase, name)
        ]
        if missing:
            raise ConfigurationError(
                f"{type(self).__name__} is missing required hook implementation(s): "
                f"{', '.join(missing)}"
            )

        self.config = (config or Config()).validate()
        self.luminance_backend = get_backend(self.config.luminance_backend)
        self.pyramid_builder = pyramid_builder or ImagePyramidBuilder(self.config.pyramid)
        self.detector_factory = detector_factory or (
            lambda w, h: Detector(w, h, self.config.detector)
        )
        self.cluster_builder = cluster_builder or HierarchicalClusterBuilder(self.config.clustering)
        self.suspend = suspend

        self.data: list[CompiledTarget] | None = None
        self._used = False

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    def create_process_canvas(self, image: Any) -> TargetImage:
        """Turn caller input into a TargetImage. Subclasses implement."""
        raise ConfigurationError(
            f"{type(self).__name__} is missing create_process_canvas implementation"
        )

    async def compile_track(
        self,
        targets: list[CompiledTarget],
        tracking_pyramids: list[list[PyramidLevel]],
        progress_callback: ProgressCallback | None,
        base_percent: float,
    ) -> list[list[dict]]:
        """Build one tracking record per target. Subclasses implement."""
        raise ConfigurationError(
            f"{type(self).__name__} is missing compile_track implementation"
        )

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def _prepare(self, images: list[Any]) -> list[GreyImage]:
        grey_images = []
        for i, img in enumerate(images):
            try:
                target_image = self.create_process_canvas(img)
                grey_images.append(to_grey(target_image, self.luminance_backend))
            except InvalidInputError as e:
                raise InvalidInputError(f"Target {i}: {e}") from e
        return grey_images

    async def _extract_matching_features(
        self,
        levels: list[PyramidLevel],
        pool: DetectorPool,
        progress: ProgressSlice,
    ) -> list[Keyframe]:
        """Detect and cluster every level of one target's matching pyramid."""
        interval = self.config.yield_interval
        keyframes = []
        for i, level in enumerate(levels):
            detector = pool.acquire(level.width, level.height)

            if interval and i % interval == 0:
                await self.suspend()

            points = detector.detect(level)
            for p in points:
                check_descriptor(p.descriptor)
            maxima_points, minima_points = partition_points(points)
            keyframes.append(Keyframe(
                maxima_points=maxima_points,
                minima_points=minima_points,
                maxima_cluster=self.cluster_builder.build(maxima_points),
                minima_cluster=self.cluster_builder.build(minima_points),
                width=level.width,
                height=level.height,
                scale=level.scale,
            ))
            progress.advance()
        return keyframes

    async def compile_image_targets(
        self,
        images: list[Any],
        progress_callback: ProgressCallback | None = None,
    ) -> list[CompiledTarget]:
        """
        Compile reference images into matching and tracking records.

        Args:
            images: Inputs accepted by ``create_process_canvas``
            progress_callback: Called with the overall percent (0-100)

        Returns:
            One CompiledTarget per input image, in input order

        Raises:
            CompilerStateError: If this compiler was already used
            InvalidInputError: If the image list is empty or an image is malformed
            CompilationError: If any target fails; nothing is stored
        """
        if self._used:
            raise CompilerStateError(
                "This compiler was already used; create a new instance to compile again"
            )
        self._used = True

        if not images:
            raise InvalidInputError("No target images to compile")

        grey_images = self._prepare(images)
        matching_pyramids = []
        tracking_pyramids = []
        for i, grey in enumerate(grey_images):
            try:
                matching_pyramids.append(self.pyramid_builder.build_matching_pyramid(grey))
                tracking_pyramids.append(self.pyramid_builder.build_tracking_pyramid(grey))
            except InvalidInputError as e:
                raise InvalidInputError(f"Target {i}: {e}") from e

        logger.info("Compiling %d image target(s)", len(grey_images))

        reporter = ProgressReporter(progress_callback, 0.0, MATCHING_PERCENT, len(grey_images))
        pool = DetectorPool(self.detector_factory)
        try:
            results = await asyncio.gather(
                *(
                    self._extract_matching_features(
                        levels, pool, reporter.slice(i, len(levels))
                    )
                    for i, levels in enumerate(matching_pyramids)
                ),
                return_exceptions=True,
            )
        finally:
            # Every task has reached the join point here
            pool.release_all()

        for i, result in enumerate(results):
            if isinstance(result, BaseException):
                raise CompilationError(
                    f"Target {i}: matching feature extraction failed: {result}",
                    target_index=i,
                ) from result

        targets = [
            CompiledTarget(
                width=grey.width,
                height=grey.height,
                matching_data=keyframes,
                grey_image=grey,
            )
            for grey, keyframes in zip(grey_images, results)
        ]

        tracking_data = await self.compile_track(
            targets, tracking_pyramids, progress_callback, MATCHING_PERCENT
        )
        if len(tracking_data) != len(targets):
            raise CompilationError(
                f"compile_track returned {len(tracking_data)} records for "
                f"{len(targets)} targets"
            )
        for target, record in zip(targets, tracking_data):
            target.tracking_data = record

        for i, target in enumerate(targets):
            logger.debug(
                "Target %d: %dx%d, %d keyframes, %d points",
                i, target.width, target.height, len(target.matching_data),
                sum(k.num_points for k in target.matching_data),
            )

        logger.info("Compiled %d image target(s)", len(targets))
        self.data = targets
        return targets

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_data(self) -> bytes:
        """
        Encode the compiled records as a bundle.

        Raises:
            CompilerStateError: If nothing was compiled or imported
        """
        if self.data is None:
            raise CompilerStateError("Nothing to export; compile or import first")
        return encode_bundle(self.data)

    def import_data(self, buffer: bytes) -> list[CompiledTarget]:
        """
        Load records from a bundle.

        Returns:
            The imported records, or an empty list if the bundle version
            is not supported
        """
        self._used = True
        self.data = decode_bundle(buffer)
        return self.data

    def save(self, path: str | Path) -> Path:
        """Write the exported bundle to ``path``."""
        path = Path(path)
        path.write_bytes(self.export_data())
        return path

    def load(self, path: str | Path) -> list[CompiledTarget]:
        """Read and import a bundle file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Bundle file not found: {path}")
        return self.import_data(path.read_bytes())
