"""CLI for RVM matting.

Commands:
    images  Matte image files (or a directory of images) as one sequence
    video   Matte every frame of a video file

Each input is treated as its own temporal sequence: recurrent state is reset
before it starts. Frames that fail are skipped and counted; the run exits
non-zero if any frame failed.
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

import cv2
import numpy as np

from rvm_matting.codec import FramePixels
from rvm_matting.config import Settings
from rvm_matting.errors import InvalidImageError, MattingError
from rvm_matting.logging_config import get_logger, setup_logging
from rvm_matting.pipeline import MattingPipeline

logger = get_logger("cli")

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp"}


def collect_images(paths: Iterable[str]) -> List[Path]:
    """Expand directories into their image files, sorted by name."""
    files: List[Path] = []
    for raw in paths:
        p = Path(raw)
        if p.is_dir():
            files.extend(sorted(
                f for f in p.iterdir() if f.suffix.lower() in IMAGE_EXTENSIONS
            ))
        elif p.is_file():
            files.append(p)
        else:
            raise FileNotFoundError(f"Input not found: {p}")
    return files


def bgr_to_frame(bgr: np.ndarray) -> FramePixels:
    """OpenCV BGR(A)/grey array -> RGB(A) FramePixels."""
    if bgr.ndim == 2:
        return FramePixels.from_array(bgr)
    if bgr.shape[2] == 4:
        return FramePixels.from_array(cv2.cvtColor(bgr, cv2.COLOR_BGRA2RGBA))
    return FramePixels.from_array(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))


def frame_to_bgr(frame: FramePixels) -> np.ndarray:
    if frame.channels == 4:
        return cv2.cvtColor(frame.pixels, cv2.COLOR_RGBA2BGRA)
    return cv2.cvtColor(frame.pixels, cv2.COLOR_RGB2BGR)


def read_video_frames(path: Path) -> Iterator[np.ndarray]:
    cap = cv2.VideoCapture(str(path))
    if not cap.isOpened():
        raise RuntimeError(f"Cannot open video: {path}")
    try:
        while True:
            ok, bgr = cap.read()
            if not ok:
                break
            yield bgr
    finally:
        cap.release()


def _write_output(pipeline: MattingPipeline, out_path: Path, green_screen: bool,
                  green_color: List[int]):
    result = pipeline.last_result
    frame = result.on_background(green_color) if green_screen else result.composite
    if not cv2.imwrite(str(out_path), frame_to_bgr(frame)):
        raise RuntimeError(f"Failed to write {out_path}")


def run_sequence(
    pipeline: MattingPipeline,
    frames: Iterable[tuple],
    output_dir: Path,
    green_screen: bool = False,
    green_color: Optional[List[int]] = None,
) -> tuple:
    """Matte (name, bgr) pairs into output_dir. Returns (ok, failed) counts."""
    output_dir.mkdir(parents=True, exist_ok=True)
    green_color = green_color or [0, 177, 64]
    pipeline.reset()

    ok = failed = 0
    start = time.time()
    for name, bgr in frames:
        try:
            if bgr is None:
                raise InvalidImageError(f"Could not decode image {name}")
            pipeline.process_frame(bgr_to_frame(bgr))
        except MattingError as e:
            failed += 1
            logger.warning("Skipping frame %s: %s", name, e)
            continue
        _write_output(pipeline, output_dir / f"{name}.png", green_screen, green_color)
        ok += 1

    elapsed = time.time() - start
    logger.info(
        "Matted %d frames (%d failed) in %.1fs (%.1f fps, final ratio %.2f)",
        ok, failed, elapsed, ok / elapsed if elapsed > 0 else 0.0,
        pipeline.downsample_ratio,
    )
    return ok, failed


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
def cmd_images(args, pipeline: MattingPipeline, settings: Settings) -> int:
    files = collect_images(args.inputs)
    if not files:
        logger.error("No images found in %s", args.inputs)
        return 1
    frames = ((f.stem, cv2.imread(str(f), cv2.IMREAD_UNCHANGED)) for f in files)
    _, failed = run_sequence(
        pipeline, frames, Path(args.output),
        green_screen=args.green_screen or settings.output.green_screen,
        green_color=settings.output.green_color,
    )
    return 1 if failed else 0


def cmd_video(args, pipeline: MattingPipeline, settings: Settings) -> int:
    frames = (
        (f"{i:06d}", bgr) for i, bgr in enumerate(read_video_frames(Path(args.input)))
    )
    _, failed = run_sequence(
        pipeline, frames, Path(args.output),
        green_screen=args.green_screen or settings.output.green_screen,
        green_color=settings.output.green_color,
    )
    return 1 if failed else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rvm-matte", description="Robust Video Matting")
    parser.add_argument("--config", help="Path to settings.yaml")
    parser.add_argument("--downsample-ratio", type=float, help="Override downsample ratio")
    parser.add_argument("--green-screen", action="store_true",
                        help="Write RGB over the green key colour instead of RGBA")
    parser.add_argument("--log-level", help="Override logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    p_images = sub.add_parser("images", help="Matte image files as one sequence")
    p_images.add_argument("inputs", nargs="+", help="Image files or directories")
    p_images.add_argument("-o", "--output", required=True, help="Output directory")

    p_video = sub.add_parser("video", help="Matte a video file to PNG frames")
    p_video.add_argument("input", help="Video file")
    p_video.add_argument("-o", "--output", required=True, help="Output directory")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_yaml(Path(args.config) if args.config else None)

    setup_logging(
        log_dir=settings.logging.log_dir,
        log_file=settings.logging.log_file,
        level=args.log_level or settings.logging.level,
    )

    commands = {
        "images": cmd_images,
        "video": cmd_video,
    }

    with MattingPipeline.from_settings(settings) as pipeline:
        if args.downsample_ratio is not None:
            pipeline.set_downsample_ratio(args.downsample_ratio)
        return commands[args.command](args, pipeline, settings)


if __name__ == "__main__":
    sys.exit(main())
