"""
Command-line entry point: split sheets of cards into one PNG per card.

Usage:
    card-grid sheet.png --output-dir out --aspect-ratio 1.4
    card-grid sheets/*.png --background "#000000" --workers 4 -v
    card-grid sheet.png --detect-only
"""

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_OUTPUT_DIR, ExtractionConfig, load_config
from .errors import GridExtractionError
from .extract import extract_images_from_image_grid, load_image
from .grid_finder import detect_grid, find_subject_bounds

# Configure module logger
logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="card-grid",
        description="Find a grid of cards in each source image and write every cell as its own PNG.",
    )
    ap.add_argument("input_images", nargs="+", help="Source images (PNG with transparency)")
    ap.add_argument("--config", default=None, type=Path,
                    help="YAML/JSON file with ExtractionConfig fields; flags override it")
    ap.add_argument("--aspect-ratio", type=float, default=None,
                    help="Output height / width (default: 1.4, a poker card)")
    ap.add_argument("--max-width", type=int, default=None,
                    help="Widest crop taken from a cell, in pixels (default: 2000)")
    ap.add_argument("--output-width", type=int, default=None,
                    help="Width of every output image, in pixels (default: 750)")
    ap.add_argument("--background", default=None,
                    help='Background color: CSS name, hex, "transparent" or 16-bit "r,g,b[,a]" (default: white)')
    ap.add_argument("--corner-radius", type=int, default=None,
                    help="Corner radius in pixels (default: 1/20 of the fitted width)")
    ap.add_argument("--workers", type=int, default=None,
                    help="Threads used to transform cells (default: 1)")
    ap.add_argument("--output-dir", default=DEFAULT_OUTPUT_DIR, type=Path,
                    help="Directory for output files (default: current directory)")
    ap.add_argument("--output-stem", default=None,
                    help="Output file name prefix (default: the input file's stem)")
    ap.add_argument("--debug", action="store_true",
                    help="Also write <stem>-DEBUG.png with every detected cell outlined")
    ap.add_argument("--detect-only", action="store_true",
                    help="Print detected grid geometry as JSON instead of writing images")
    ap.add_argument("--verbose", "-v", action="store_true",
                    help="Enable verbose logging output")
    return ap


def _resolve_config(args: argparse.Namespace) -> ExtractionConfig:
    base = load_config(args.config) if args.config else ExtractionConfig()
    return base.with_overrides(
        aspect_ratio=args.aspect_ratio,
        max_width=args.max_width,
        output_width=args.output_width,
        background=args.background,
        corner_radius=args.corner_radius,
        workers=args.workers,
    )


def _detect_only(image_path: str) -> dict:
    image = load_image(image_path)
    detection = detect_grid(image)
    out = {"image": image_path}
    out.update(detection.to_dict())
    if not detection.cells:
        try:
            out["subject_bounds"] = find_subject_bounds(image).to_dict()
        except GridExtractionError as e:
            logger.debug(f"No subject bounds for {image_path}: {e}")
            out["subject_bounds"] = None
    return out


def _extract_one(image_path: str, cfg: ExtractionConfig, args: argparse.Namespace) -> int:
    stem = args.output_stem or Path(image_path).stem
    debug_path = args.output_dir / f"{stem}-DEBUG.png" if args.debug else None

    image = load_image(image_path)
    written = extract_images_from_image_grid(
        image,
        aspect_ratio=cfg.aspect_ratio,
        max_width=cfg.max_width,
        background_color=cfg.background_color,
        output_dir=args.output_dir,
        output_stem=stem,
        corner_radius=cfg.corner_radius,
        corner_radius_fraction=cfg.corner_radius_fraction,
        output_width=cfg.output_width,
        debug_path=debug_path,
        workers=cfg.workers,
    )
    return len(written)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        cfg = _resolve_config(args)
    except (OSError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    logger.debug(f"Configuration: {cfg.to_dict()}")

    failures = 0
    for image_path in args.input_images:
        logger.info(f"Processing image: {image_path}")
        try:
            if args.detect_only:
                print(json.dumps(_detect_only(image_path), indent=2))
            else:
                count = _extract_one(image_path, cfg, args)
                print(f"{image_path}: wrote {count} images to {args.output_dir}")
        except GridExtractionError as e:
            logger.error(f"Failed to process {image_path}: {e}")
            failures += 1

    if failures:
        logger.warning(f"{failures} of {len(args.input_images)} images failed")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
