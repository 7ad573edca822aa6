"""
Core module - Data model, configuration and errors.
"""

from imagetarget.core.base import (
    TargetImage,
    GreyImage,
    PyramidLevel,
    FeaturePoint,
    Keyframe,
    CompiledTarget,
    PyramidBuilder,
    FeatureDetector,
    ClusterIndexBuilder,
)
from imagetarget.core.config import (
    Config,
    load_config,
    save_config,
    apply_env_overrides,
)
from imagetarget.core.errors import (
    ImageTargetError,
    ConfigurationError,
    InvalidInputError,
    CompilationError,
    CompilerStateError,
    BundleDecodeError,
)

__all__ = [
    "TargetImage",
    "GreyImage",
    "PyramidLevel",
    "FeaturePoint",
    "Keyframe",
    "CompiledTarget",
    "PyramidBuilder",
    "FeatureDetector",
    "ClusterIndexBuilder",
    "Config",
    "load_config",
    "save_config",
    "apply_env_overrides",
    "ImageTargetError",
    "ConfigurationError",
    "InvalidInputError",
    "CompilationError",
    "CompilerStateError",
    "BundleDecodeError",
]
