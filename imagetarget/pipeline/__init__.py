"""
Pipeline module - Image target compilation and bundle I/O.

This module provides:
- CompilerBase: Concurrent compilation pipeline with lifecycle hooks
- ImageTargetCompiler: Compiler for image files and arrays
- DetectorPool: Session-scoped detector cache
- encode_bundle / decode_bundle: Versioned binary bundle codec
"""

from imagetarget.pipeline.compiler import CompilerBase, cooperative_yield
from imagetarget.pipeline.image_target import ImageTargetCompiler, load_image
from imagetarget.pipeline.pool import DetectorPool
from imagetarget.pipeline.progress import ProgressReporter, ProgressSlice
from imagetarget.pipeline.serializer import (
    CURRENT_VERSION,
    decode_bundle,
    encode_bundle,
    read_bundle_version,
)

__all__ = [
    "CompilerBase",
    "cooperative_yield",
    "ImageTargetCompiler",
    "load_image",
    "DetectorPool",
    "ProgressReporter",
    "ProgressSlice",
    "CURRENT_VERSION",
    "decode_bundle",
    "encode_bundle",
    "read_bundle_version",
]
