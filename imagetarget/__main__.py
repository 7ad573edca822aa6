"""
imagetarget Command Line Interface

Usage:
    imagetarget <command> [options]

Commands:
    compile     Compile reference images into a target bundle
    inspect     Show the contents of a target bundle
    smooth      Smooth a recorded track curve with the one-euro filter
    config      Write a configuration file with default values

Examples:
    imagetarget compile card.png poster.jpg -o targets.mind
    imagetarget compile card.png -o card.mind -c imagetarget.json -q
    imagetarget inspect targets.mind
    imagetarget smooth track01.crv -o track01_smooth.crv --fps 30
    imagetarget config --create imagetarget.json
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from imagetarget import __version__


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='imagetarget',
        description='Image target compiler',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        '-V', '--version',
        action='version',
        version=f'imagetarget {__version__}',
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Show informational log messages',
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Compile command
    compile_parser = subparsers.add_parser(
        'compile',
        help='Compile reference images into a target bundle',
    )
    compile_parser.add_argument('images', nargs='+', help='Reference image files')
    compile_parser.add_argument(
        '-o', '--output',
        default='targets.mind',
        help='Output bundle path (default: targets.mind)',
    )
    compile_parser.add_argument(
        '-c', '--config',
        default=None,
        help='Configuration file (JSON)',
    )
    compile_parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Suppress progress output',
    )

    # Inspect command
    inspect_parser = subparsers.add_parser(
        'inspect',
        help='Show the contents of a target bundle',
    )
    inspect_parser.add_argument('bundle', help='Bundle file')

    # Smooth command
    smooth_parser = subparsers.add_parser(
        'smooth',
        help='Try one-euro filter settings on a recorded track curve',
    )
    smooth_parser.add_argument('track', help='Input .crv file')
    smooth_parser.add_argument(
        '-o', '--output',
        required=True,
        help='Output .crv file',
    )
    smooth_parser.add_argument(
        '--fps',
        type=float,
        default=30.0,
        help='Frame rate of the track (default: 30)',
    )
    smooth_parser.add_argument(
        '--min-cutoff',
        type=float,
        default=None,
        help='Minimum cutoff frequency, per millisecond (default: from config)',
    )
    smooth_parser.add_argument(
        '--beta',
        type=float,
        default=None,
        help='Speed coefficient (default: from config)',
    )
    smooth_parser.add_argument(
        '-c', '--config',
        default=None,
        help='Configuration file (JSON)',
    )

    # Config command
    config_parser = subparsers.add_parser(
        'config',
        help='Write a configuration file with default values',
    )
    config_parser.add_argument(
        '--create',
        metavar='PATH',
        default='imagetarget.json',
        help='Path of the file to create (default: imagetarget.json)',
    )

    # Parse arguments
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    if args.command is None:
        parser.print_help()
        return 0

    # Dispatch to appropriate command
    if args.command == 'compile':
        return run_compile(args)
    elif args.command == 'inspect':
        return run_inspect(args)
    elif args.command == 'smooth':
        return run_smooth(args)
    elif args.command == 'config':
        return run_config(args)
    else:
        parser.print_help()
        return 1


def _load_config(path: str | None):
    from imagetarget.core.config import Config, apply_env_overrides, load_config

    config = load_config(path) if path else Config()
    return apply_env_overrides(config).validate()


def run_compile(args) -> int:
    """Run the compile command."""
    from imagetarget.core.errors import ImageTargetError
    from imagetarget.pipeline import ImageTargetCompiler

    try:
        compiler = ImageTargetCompiler(config=_load_config(args.config))
    except (ImageTargetError, FileNotFoundError) as e:
        print(f"Error: {e}")
        return 1

    def on_progress(percent: float) -> None:
        if not args.quiet:
            print(f"\rCompiling: {percent:5.1f}%", end='')

    print(f"Compiling {len(args.images)} image target(s)")
    try:
        targets = asyncio.run(compiler.compile_image_targets(args.images, on_progress))
    except ImageTargetError as e:
        print(f"\nError: {e}")
        return 1

    output = compiler.save(args.output)
    if not args.quiet:
        print()
    for i, target in enumerate(targets):
        points = sum(k.num_points for k in target.matching_data)
        print(f"  target {i}: {target.width}x{target.height}, "
              f"{len(target.matching_data)} keyframes, {points} points")
    print(f"Wrote {output}")
    return 0


def run_inspect(args) -> int:
    """Run the inspect command."""
    from imagetarget.core.errors import BundleDecodeError
    from imagetarget.pipeline import CURRENT_VERSION, decode_bundle, read_bundle_version

    path = Path(args.bundle)
    if not path.exists():
        print(f"Error: Bundle file not found: {path}")
        return 1

    buffer = path.read_bytes()
    try:
        version = read_bundle_version(buffer)
        targets = decode_bundle(buffer)
    except BundleDecodeError as e:
        print(f"Error: {e}")
        return 1

    print(f"{path.name}: version {version} (supported: {CURRENT_VERSION})")
    if version != CURRENT_VERSION:
        return 1

    for i, target in enumerate(targets):
        print(f"target {i}: {target.width}x{target.height}")
        for k in target.matching_data:
            print(f"  matching {k.width}x{k.height} scale {k.scale:.3f}: "
                  f"{len(k.maxima_points)} maxima, {len(k.minima_points)} minima")
        for t in target.tracking_data:
            print(f"  tracking {t['width']}x{t['height']} scale {t['scale']:.3f}: "
                  f"{len(t['points'])} points")
    return 0


def run_smooth(args) -> int:
    """Run the smooth command."""
    from imagetarget.core.errors import ImageTargetError
    from imagetarget.tracking import read_crv_file, smooth_track, write_crv_file

    try:
        settings = _load_config(args.config).filter
    except (ImageTargetError, FileNotFoundError) as e:
        print(f"Error: {e}")
        return 1
    if args.min_cutoff is not None:
        settings.min_cutoff = args.min_cutoff
    if args.beta is not None:
        settings.beta = args.beta

    try:
        data = read_crv_file(args.track)
        smoothed = smooth_track(data, fps=args.fps, settings=settings)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    write_crv_file(args.output, smoothed)
    print(f"Smoothed {len(smoothed)} samples -> {args.output}")
    return 0


def run_config(args) -> int:
    """Run the config command."""
    from imagetarget.core.config import create_example_config

    create_example_config(args.create)
    return 0


if __name__ == '__main__':
    sys.exit(main())
