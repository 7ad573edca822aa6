"""
Versioned binary bundle codec.

Bundle layout (msgpack)::

    {
        "v": CURRENT_VERSION,
        "targets": [
            {
                "target_image": {"width": int, "height": int},
                "matching_data": [Keyframe.to_dict(), ...],
                "tracking_data": [...],
            },
            ...
        ],
    }

Target pixel buffers are not stored; only their dimensions are.
"""

import logging

import msgpack

from imagetarget.core.base import CompiledTarget, Keyframe
from imagetarget.core.errors import BundleDecodeError, format_version_mismatch

logger = logging.getLogger(__name__)

CURRENT_VERSION = 2


def _target_to_dict(target: CompiledTarget) -> dict:
    return {
        "target_image": {"width": int(target.width), "height": int(target.height)},
        "matching_data": [k.to_dict() for k in target.matching_data],
        "tracking_data": target.tracking_data,
    }


def _target_from_dict(data: dict) -> CompiledTarget:
    return CompiledTarget(
        width=data["target_image"]["width"],
        height=data["target_image"]["height"],
        matching_data=[Keyframe.from_dict(k) for k in data["matching_data"]],
        tracking_data=data["tracking_data"],
    )


def encode_bundle(targets: list[CompiledTarget]) -> bytes:
    """Encode compiled targets with the current format version."""
    return msgpack.packb({
        "v": CURRENT_VERSION,
        "targets": [_target_to_dict(t) for t in targets],
    })


def _unpack(buffer: bytes) -> object:
    try:
        return msgpack.unpackb(bytes(buffer))
    except (msgpack.UnpackException, ValueError, TypeError) as e:
        raise BundleDecodeError(f"Bytes are not a compiled bundle: {e}") from e


def read_bundle_version(buffer: bytes) -> int | None:
    """Return the version tag of a bundle, or None if it has none."""
    content = _unpack(buffer)
    if not isinstance(content, dict):
        return None
    return content.get("v")


def decode_bundle(buffer: bytes) -> list[CompiledTarget]:
    """
    Decode a bundle.

    The version tag is checked before any other field is read. A missing
    or different version is reported and yields an empty list.

    Raises:
        BundleDecodeError: If the bytes are not msgpack, or a bundle of the
            current version is missing fields
    """
    content = _unpack(buffer)
    version = content.get("v") if isinstance(content, dict) else None
    if version != CURRENT_VERSION:
        logger.error(format_version_mismatch(CURRENT_VERSION, version))
        return []

    try:
        return [_target_from_dict(t) for t in content["targets"]]
    except (KeyError, TypeError) as e:
        raise BundleDecodeError(f"Bundle version {version} is missing field {e}") from e
