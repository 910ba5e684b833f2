"""Classification results and the listener that receives them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from mediapipe.tasks.python.vision import ImageClassifierResult


@dataclass(frozen=True)
class Category:
    """A single classification prediction."""

    label: str
    score: float


@dataclass(frozen=True)
class ClassifierResult:
    """Ranked predictions for one submitted frame.

    ``timestamp_ms`` is the token the frame was submitted with.
    """

    timestamp_ms: int
    categories: list[Category] = field(default_factory=list)

    @classmethod
    def from_mediapipe(cls, result: ImageClassifierResult, timestamp_ms: int) -> ClassifierResult:
        """Build from a MediaPipe result, using the first classification head."""
        categories: list[Category] = []
        if result.classifications:
            for candidate in result.classifications[0].categories:
                label = candidate.display_name or candidate.category_name or ""
                categories.append(Category(label=label, score=float(candidate.score or 0.0)))
        categories.sort(key=lambda c: c.score, reverse=True)
        return cls(timestamp_ms=timestamp_ms, categories=categories)

    def top(self) -> Category | None:
        return self.categories[0] if self.categories else None


class ClassifierListener(Protocol):
    """Receives asynchronous notifications from ``ImageClassifierHelper``."""

    def on_error(self, message: str) -> None:
        """Called once per initialization or classification failure."""
        ...

    def on_results(self, result: ClassifierResult, inference_time_ms: int) -> None:
        """Called once per completed classification.

        Args:
            result: Ranked categories and the submission timestamp.
            inference_time_ms: Milliseconds between submission and delivery.
        """
        ...
