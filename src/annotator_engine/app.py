"""Engine bootstrap and command line entry point."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import cv2

from .core.classes import ClassRegistry
from .core.config import DEFAULT_CONFIG_PATH, ConfigManager
from .core.edge_snap import ImageBuffer
from .core.engine import AnnotationEngine
from .core.errors import InvalidGeometryError, SourceUnavailableError
from .core.models import BoxGeometry

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging for command line use."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),
        ]
    )


def create_engine(config_path: Optional[Path] = None) -> AnnotationEngine:
    """
    Create an engine from a configuration file.

    Args:
        config_path: YAML config file; defaults are used if it does not exist

    Returns:
        Configured AnnotationEngine instance
    """
    manager = ConfigManager(config_path or DEFAULT_CONFIG_PATH)
    config = manager.config

    classes = ClassRegistry.load(Path(config.classes_file)) if config.classes_file else None
    return AnnotationEngine(config, classes)


def load_image(path: Path) -> ImageBuffer:
    """
    Decode an image file into an RGB pixel buffer.

    Raises:
        SourceUnavailableError: If the file cannot be decoded
    """
    pixels = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if pixels is None:
        raise SourceUnavailableError(f"Cannot read image {path}")
    return ImageBuffer(cv2.cvtColor(pixels, cv2.COLOR_BGR2RGB))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="annotator-engine",
        description="Annotation engine utilities"
    )
    parser.add_argument("--config", type=Path, default=None, help="Engine config YAML")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    snap = subparsers.add_parser("snap", help="Snap a box to the nearest image edges")
    snap.add_argument("image", type=Path, help="Image file")
    snap.add_argument("x", type=float)
    snap.add_argument("y", type=float)
    snap.add_argument("width", type=float)
    snap.add_argument("height", type=float)
    return parser


def snap_command(args: argparse.Namespace) -> int:
    """Run the edge snap on a single box and print the result."""
    engine = create_engine(args.config)

    try:
        engine.set_image(load_image(args.image))
    except SourceUnavailableError as e:
        logger.error(str(e))
        return 1

    try:
        seed = BoxGeometry(args.x, args.y, args.width, args.height)
    except InvalidGeometryError as e:
        logger.error(str(e))
        return 1

    shape_id = engine.store.add(seed)
    result = engine.request_edge_snap(shape_id)

    box = engine.store.get(shape_id).geometry
    print(f"{box.x:.2f} {box.y:.2f} {box.width:.2f} {box.height:.2f}")

    if not result.ok:
        logger.info(f"Box unchanged: {result.message}")
        return 2
    return 0


def run(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run the command line interface.

    Returns:
        Exit code
    """
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    commands = {"snap": snap_command}
    return commands[args.command](args)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the command line tool."""
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
