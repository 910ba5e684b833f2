"""Command-line entry point: classify a live camera feed."""

from __future__ import annotations

import argparse
import logging
from typing import TYPE_CHECKING

import cv2
from pydantic import ValidationError

from liveclassify.config import Delegate, Settings, get_settings
from liveclassify.ml.classifier_helper import ImageClassifierHelper
from liveclassify.ml.frames import CameraFrame
from liveclassify.ml.model_assets import ModelAssets

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from liveclassify.ml.results import ClassifierResult

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class LoggingListener:
    """Logs classifier output and keeps the most recent result."""

    def __init__(self) -> None:
        self.latest: ClassifierResult | None = None
        self.error_count = 0

    def on_results(self, result: ClassifierResult, inference_time_ms: int) -> None:
        self.latest = result
        labels = ", ".join(f"{c.label} ({c.score:.2f})" for c in result.categories) or "-"
        logger.info("Frame %s: %s [%d ms]", result.timestamp_ms, labels, inference_time_ms)

    def on_error(self, message: str) -> None:
        self.error_count += 1
        logger.error("Classifier error: %s", message)


def run_camera(
    settings: Settings,
    listener: LoggingListener,
    *,
    max_frames: int | None = None,
    capture_factory: Callable[[int], cv2.VideoCapture] = cv2.VideoCapture,
) -> int:
    """Read frames from the configured camera and feed them to the classifier.

    Returns:
        Number of frames submitted.

    Raises:
        RuntimeError: If the camera cannot be opened.
        ValidationError: If the classifier settings are out of range.
    """
    helper = ImageClassifierHelper(settings.to_classifier_config(), listener, assets=ModelAssets(settings))

    cap = capture_factory(settings.camera_index)
    if not cap.isOpened():
        raise RuntimeError(f"Failed to open camera index {settings.camera_index}")

    logger.info(
        "Starting classification (camera=%s, model=%s, delegate=%s)",
        settings.camera_index,
        settings.model_asset_name,
        settings.delegate,
    )

    frames = 0
    with helper:
        try:
            while max_frames is None or frames < max_frames:
                ok, image = cap.read()
                if not ok:
                    logger.warning("Failed to read frame from camera")
                    break
                helper.classify(CameraFrame.from_bgr(image, rotation_degrees=settings.rotation_degrees))
                frames += 1
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            cap.release()

    logger.info("Classification stopped after %d frames", frames)
    return frames


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="liveclassify", description="Classify a live camera feed with MediaPipe")
    parser.add_argument("--camera", dest="camera_index", type=int, help="camera index")
    parser.add_argument("--model", dest="model_asset_name", help="model asset name or path")
    parser.add_argument("--delegate", choices=[d.value for d in Delegate], help="execution backend")
    parser.add_argument("--threshold", type=float, help="minimum score for a category")
    parser.add_argument("--max-results", type=int, help="categories per frame")
    parser.add_argument(
        "--num-threads",
        type=int,
        help="accepted for configuration parity; ignored by the MediaPipe Python backend",
    )
    parser.add_argument("--rotation", dest="rotation_degrees", type=int, help="frame rotation in degrees")
    parser.add_argument("--max-frames", type=int, default=None, help="stop after this many frames")
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return settings with every CLI option that was given applied on top.

    Raises:
        ValidationError: If an option is out of range.
    """
    fields = (
        "camera_index",
        "model_asset_name",
        "delegate",
        "threshold",
        "max_results",
        "num_threads",
        "rotation_degrees",
    )
    update: dict[str, object] = {}
    for name in fields:
        value = getattr(args, name)
        if value is not None:
            update[name] = Delegate(value) if name == "delegate" else value
    return type(settings).model_validate({**settings.model_dump(), **update})


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = apply_overrides(get_settings(), args)
    except ValidationError as exc:
        logging.basicConfig(format=LOG_FORMAT)
        logger.error("Invalid configuration: %s", exc)
        return 1

    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

    listener = LoggingListener()
    try:
        run_camera(settings, listener, max_frames=args.max_frames)
    except RuntimeError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
