"""Camera frames and their conversion to MediaPipe images.

A frame owns a raw pixel buffer plus the geometry needed to read it. The
classifier copies the pixels out into a dense ``mp.Image`` and then releases
the frame, so the buffer can go back to the camera before inference finishes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

import cv2
import mediapipe as mp
import numpy as np

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray


class PixelFormat(StrEnum):
    RGBA_8888 = "rgba_8888"
    RGB_888 = "rgb_888"

    @property
    def channels(self) -> int:
        return 4 if self is PixelFormat.RGBA_8888 else 3


_IMAGE_FORMATS: dict[PixelFormat, mp.ImageFormat] = {
    PixelFormat.RGBA_8888: mp.ImageFormat.SRGBA,
    PixelFormat.RGB_888: mp.ImageFormat.SRGB,
}


class Frame(Protocol):
    """Protocol for a single camera image handed to the classifier."""

    @property
    def buffer(self) -> object:
        """Return the raw pixel bytes (any object exposing the buffer protocol)."""
        ...

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    @property
    def pixel_format(self) -> PixelFormat: ...

    @property
    def rotation_degrees(self) -> int:
        """Return the clockwise rotation needed to display the frame upright."""
        ...

    @property
    def row_stride(self) -> int | None:
        """Return bytes per row, or None when rows are tightly packed."""
        ...

    def close(self) -> None:
        """Release the underlying buffer."""
        ...


@dataclass
class CameraFrame:
    """A frame backed by an in-memory buffer.

    ``release`` is called once when the frame is closed, e.g. to hand the
    buffer back to a capture pool.
    """

    buffer: object
    width: int
    height: int
    pixel_format: PixelFormat = PixelFormat.RGBA_8888
    rotation_degrees: int = 0
    row_stride: int | None = None
    release: Callable[[], None] | None = field(default=None, repr=False)
    _closed: bool = field(default=False, init=False, repr=False)

    @classmethod
    def from_bgr(cls, image: NDArray[np.uint8], rotation_degrees: int = 0) -> CameraFrame:
        """Wrap an OpenCV BGR capture as an RGBA frame."""
        rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
        height, width = rgba.shape[:2]
        return cls(
            buffer=np.ascontiguousarray(rgba),
            width=width,
            height=height,
            pixel_format=PixelFormat.RGBA_8888,
            rotation_degrees=rotation_degrees,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.buffer = b""
        if self.release is not None:
            self.release()


def to_pixels(frame: Frame) -> NDArray[np.uint8]:
    """Copy a frame's pixels into a contiguous HxWxC uint8 array.

    Raises:
        ValueError: If the frame geometry does not match its buffer.
    """
    width, height = frame.width, frame.height
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid frame size {width}x{height}")

    channels = frame.pixel_format.channels
    row_bytes = width * channels
    stride = frame.row_stride if frame.row_stride is not None else row_bytes
    if stride < row_bytes:
        raise ValueError(f"Row stride {stride} is smaller than a row of {row_bytes} bytes")

    try:
        flat = np.frombuffer(frame.buffer, dtype=np.uint8)  # type: ignore[call-overload]
    except TypeError as exc:
        raise ValueError(f"Frame buffer is not bytes-like: {type(frame.buffer).__name__}") from exc
    # The last row may omit its trailing padding.
    needed = stride * (height - 1) + row_bytes
    if flat.size < needed:
        raise ValueError(f"Frame buffer holds {flat.size} bytes, {width}x{height} {frame.pixel_format} needs {needed}")

    if stride == row_bytes:
        return flat[:needed].reshape(height, width, channels).copy()

    rows = np.lib.stride_tricks.as_strided(
        flat,
        shape=(height, width, channels),
        strides=(stride, channels, 1),
        writeable=False,
    )
    return np.ascontiguousarray(rows)


def to_mp_image(frame: Frame) -> mp.Image:
    """Convert a frame into the dense image representation MediaPipe expects."""
    pixels = to_pixels(frame)
    return mp.Image(image_format=_IMAGE_FORMATS[frame.pixel_format], data=pixels)
