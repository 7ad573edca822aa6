"""
Track curve I/O.

Recorded tracking signals are stored as .crv files, one sample per line:

    FRAME [[ x, y ]]      bracket form, as exported by Blender
    FRAME x y             plain form

Both forms are read; the bracket form is written. Only used to feed
recorded curves through the one-euro filter from the command line.
"""

import re
from pathlib import Path
from typing import Iterator

CRV_PATTERN = re.compile(r'(-?\d+)\s*\[\[\s*(-?[\d.eE+-]+)\s*,\s*(-?[\d.eE+-]+)\s*\]\]')
SIMPLE_PATTERN = re.compile(r'(-?\d+)\s+(-?[\d.eE+-]+)\s+(-?[\d.eE+-]+)')


def parse_track_line(line: str) -> tuple[int, float, float] | None:
    """
    Parse one track line.

    Returns:
        (frame, x, y), or None for blank or unrecognized lines
    """
    line = line.strip()
    if not line:
        return None

    match = CRV_PATTERN.match(line) or SIMPLE_PATTERN.match(line)
    if match is None:
        return None
    try:
        return int(match.group(1)), float(match.group(2)), float(match.group(3))
    except ValueError:
        return None


def iter_crv_file(path: str | Path) -> Iterator[tuple[int, float, float]]:
    """Yield (frame, x, y) samples from a .crv file in file order."""
    with open(path, 'r') as f:
        for line in f:
            parsed = parse_track_line(line)
            if parsed:
                yield parsed


def read_crv_file(path: str | Path) -> dict[int, tuple[float, float]]:
    """
    Read a .crv file.

    Returns:
        Mapping of frame number to (x, y); later lines win on duplicates

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Track file not found: {path}")
    return {frame: (x, y) for frame, x, y in iter_crv_file(path)}


def write_crv_file(path: str | Path, data: dict[int, tuple[float, float]]) -> None:
    """Write samples in bracket form, sorted by frame."""
    with open(Path(path), 'w') as f:
        for frame, (x, y) in sorted(data.items()):
            f.write(f"{frame} [[ {x}, {y}]]\n")
