"""Live-stream image classification on top of MediaPipe Tasks.

The helper owns one MediaPipe ``ImageClassifier`` in LIVE_STREAM mode. It is
built lazily from a ``ClassifierConfig`` on the first frame and rebuilt on
the next frame after ``invalidate()``. Frames are submitted asynchronously;
results and errors reach the caller through a ``ClassifierListener``.

Failures never propagate out of ``classify``: they are logged and reported
through ``ClassifierListener.on_error``.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from mediapipe.tasks.python import BaseOptions
from mediapipe.tasks.python.vision import ImageClassifier, ImageClassifierOptions, RunningMode
from mediapipe.tasks.python.vision.core.image_processing_options import ImageProcessingOptions

from liveclassify.config import ClassifierConfig, Delegate
from liveclassify.ml.frames import to_mp_image
from liveclassify.ml.results import ClassifierResult

if TYPE_CHECKING:
    from types import TracebackType

    import mediapipe as mp
    from mediapipe.tasks.python.vision import ImageClassifierResult

    from liveclassify.ml.frames import Frame
    from liveclassify.ml.model_assets import ModelAssets
    from liveclassify.ml.results import ClassifierListener

logger = logging.getLogger(__name__)

INIT_FAILED_MESSAGE = "Image classifier failed to initialize. See error logs for details"
UNKNOWN_ERROR_MESSAGE = "An unknown error has occurred"

_DELEGATES: dict[Delegate, BaseOptions.Delegate] = {
    Delegate.CPU: BaseOptions.Delegate.CPU,
    Delegate.GPU: BaseOptions.Delegate.GPU,
}


def _now_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class ImageClassifierHelper:
    """Configures a MediaPipe image classifier and relays its output."""

    def __init__(
        self,
        config: ClassifierConfig | None = None,
        listener: ClassifierListener | None = None,
        *,
        assets: ModelAssets | None = None,
    ) -> None:
        self.config = config if config is not None else ClassifierConfig()
        self.listener = listener
        self._assets = assets
        self._classifier: ImageClassifier | None = None
        self._last_timestamp_ms = -1

    # -- Public API ---------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        """Whether a classifier handle is currently present."""
        return self._classifier is not None

    def invalidate(self) -> None:
        """Drop the current classifier; the next frame rebuilds it.

        Use after changing any field of ``config``.
        """
        self._classifier = None

    def classify(self, frame: Frame) -> None:
        """Submit a frame for asynchronous classification.

        Returns immediately. The frame is closed before returning, whatever
        the outcome.
        """
        try:
            if self._classifier is None:
                self._setup()
            classifier = self._classifier
            if classifier is None:
                return

            image = to_mp_image(frame)
            processing_options = ImageProcessingOptions(rotation_degrees=frame.rotation_degrees)
            timestamp_ms = self._next_timestamp()
            classifier.classify_async(image, timestamp_ms, processing_options)
        except (ValueError, RuntimeError) as exc:
            logger.warning("Classification failed: %s", exc)
            self._report_error(str(exc) or UNKNOWN_ERROR_MESSAGE)
        finally:
            frame.close()

    def close(self) -> None:
        """Close the underlying classifier, if any."""
        classifier, self._classifier = self._classifier, None
        if classifier is not None:
            classifier.close()
            logger.info("Image classifier closed")

    def __enter__(self) -> ImageClassifierHelper:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Internal -----------------------------------------------------------

    def _setup(self) -> None:
        try:
            options = self._build_options()
            classifier = ImageClassifier.create_from_options(options)
        except (RuntimeError, ValueError, OSError) as exc:
            logger.error("MediaPipe failed to load model with error: %s", exc)
            self._report_error(INIT_FAILED_MESSAGE)
            return

        self._classifier = classifier
        logger.info(
            "Image classifier ready (model=%s, delegate=%s, threshold=%s, max_results=%s)",
            self.config.model_asset_name,
            self.config.delegate,
            self.config.threshold,
            self.config.max_results,
        )

    def _build_options(self) -> ImageClassifierOptions:
        config = self.config
        if self._assets is not None:
            model_path = str(self._assets.resolve(config.model_asset_name))
        else:
            model_path = config.model_asset_name

        base_options = BaseOptions(
            model_asset_path=model_path,
            delegate=_DELEGATES[config.delegate],
        )
        return ImageClassifierOptions(
            base_options=base_options,
            running_mode=RunningMode.LIVE_STREAM,
            max_results=config.max_results,
            score_threshold=config.threshold,
            result_callback=self._on_result,
        )

    def _next_timestamp(self) -> int:
        # MediaPipe rejects timestamps that do not strictly increase.
        timestamp_ms = max(_now_ms(), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = timestamp_ms
        return timestamp_ms

    def _on_result(self, result: ImageClassifierResult, output_image: mp.Image, timestamp_ms: int) -> None:
        inference_time_ms = _now_ms() - timestamp_ms
        classified = ClassifierResult.from_mediapipe(result, timestamp_ms)

        top = classified.top()
        if top is not None:
            logger.debug("Classified frame %s as %s (score=%.2f)", timestamp_ms, top.label, top.score)

        if self.listener is not None:
            self.listener.on_results(classified, inference_time_ms)

    def _report_error(self, message: str) -> None:
        if self.listener is not None:
            self.listener.on_error(message)
