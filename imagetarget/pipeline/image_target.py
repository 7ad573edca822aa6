"""
Concrete image target compiler.

Accepts image files or numpy arrays and builds tracking records from
Shi-Tomasi corners on the tracking pyramid.
"""

from pathlib import Path
from typing import Any

import cv2
import numpy as np

from imagetarget.core.base import CompiledTarget, PyramidLevel, TargetImage
from imagetarget.core.errors import InvalidInputError
from imagetarget.pipeline.compiler import CompilerBase
from imagetarget.pipeline.progress import ProgressCallback, ProgressReporter
from imagetarget.tracking.extractor import build_tracking_record


def load_image(path: str | Path) -> TargetImage:
    """
    Decode an image file into an RGB TargetImage.

    Raises:
        InvalidInputError: If the file is missing or cannot be decoded
    """
    path = Path(path)
    bgr = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if bgr is None:
        raise InvalidInputError(f"Could not read image: {path}")
    rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
    return TargetImage(width=rgb.shape[1], height=rgb.shape[0], data=rgb)


class ImageTargetCompiler(CompilerBase):
    """
    Compiler for image files and in-memory arrays.

    Example:
        >>> compiler = ImageTargetCompiler()
        >>> targets = asyncio.run(compiler.compile_image_targets(["card.png"]))
        >>> compiler.save("card.mind")
    """

    def create_process_canvas(self, image: Any) -> TargetImage:
        """
        Prepare caller input as a TargetImage.

        Args:
            image: TargetImage, path to an image file, or uint8 array
                (HxW grey, HxWx3 RGB, HxWx4 RGBA)
        """
        if isinstance(image, TargetImage):
            return image
        if isinstance(image, (str, Path)):
            return load_image(image)
        if isinstance(image, np.ndarray):
            if image.ndim < 2:
                raise InvalidInputError(f"Image array shape {image.shape} has no height/width")
            return TargetImage(width=image.shape[1], height=image.shape[0], data=image)
        raise InvalidInputError(f"Unsupported image input type: {type(image).__name__}")

    async def compile_track(
        self,
        targets: list[CompiledTarget],
        tracking_pyramids: list[list[PyramidLevel]],
        progress_callback: ProgressCallback | None,
        base_percent: float,
    ) -> list[list[dict]]:
        reporter = ProgressReporter(progress_callback, base_percent, 100.0, len(targets))
        records = []
        for i, levels in enumerate(tracking_pyramids):
            progress = reporter.slice(i, 1)
            records.append(build_tracking_record(levels, self.config.tracking))
            progress.advance()
            await self.suspend()
        return records
