"""
Exception types raised by the imagetarget package.

All errors derive from ImageTargetError so callers can catch the whole
family in one place. InvalidInputError also derives from ValueError and
CompilerStateError from RuntimeError, matching what plain Python code
would raise for the same situations.
"""


class ImageTargetError(Exception):
    """Base class for imagetarget errors."""


class ConfigurationError(ImageTargetError):
    """A compiler or configuration value is incomplete or out of range."""


class InvalidInputError(ImageTargetError, ValueError):
    """Input images or buffers cannot be compiled."""


class CompilationError(ImageTargetError):
    """
    Compilation of one target failed.

    Attributes:
        target_index: Index of the failing target in the input list
    """

    def __init__(self, message: str, target_index: int | None = None):
        super().__init__(message)
        self.target_index = target_index


class CompilerStateError(ImageTargetError, RuntimeError):
    """An operation was called in the wrong lifecycle state."""


class BundleDecodeError(ImageTargetError):
    """Bytes could not be decoded as a compiled bundle."""


def format_version_mismatch(expected: int, found) -> str:
    """Build the diagnostic reported when a bundle has the wrong version."""
    return (
        f"Compiled bundle version mismatch: expected {expected}, found {found}. "
        "The bundle is outdated or was produced by a different release; "
        "please recompile the image targets."
    )
