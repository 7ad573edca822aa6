"""
imagetarget - Image target compiler and tracking signal smoothing
==================================================================

Builds compact, versioned matching indexes from reference images for
image-target recognition and tracking, and provides the one-euro filter
used to stabilize per-frame tracking signals.

Main modules:
- imagetarget.pipeline: Compilation pipeline and bundle I/O
- imagetarget.features: Scale pyramids, feature detection, clustering
- imagetarget.tracking: One-euro filter, tracking records, track curves
- imagetarget.processing: Luminance conversion
- imagetarget.core: Data model, configuration and errors

Quick start:
    >>> import asyncio
    >>> from imagetarget import ImageTargetCompiler
    >>> compiler = ImageTargetCompiler()
    >>> asyncio.run(compiler.compile_image_targets(["card.png"], print))
    >>> compiler.save("card.mind")
"""

__version__ = "0.1.0"

# Convenience imports
from imagetarget.core.config import Config, load_config
from imagetarget.pipeline import CompilerBase, ImageTargetCompiler, CURRENT_VERSION
from imagetarget.tracking import OneEuroFilter

__all__ = [
    "__version__",
    "Config",
    "load_config",
    "CompilerBase",
    "ImageTargetCompiler",
    "CURRENT_VERSION",
    "OneEuroFilter",
]
