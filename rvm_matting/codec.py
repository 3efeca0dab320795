"""Conversion between 8-bit pixel images and NCHW float tensors.

encode: (H, W, C) uint8 -> resize -> [0, 1] float32 -> [1, 3, H, W]
decode: [1, C, H, W] float32 -> clamp -> (H, W, C) -> resize -> uint8

Both directions resample with OpenCV bilinear interpolation so a frame pushed
through an identity model comes back within quantisation tolerance.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

import cv2
import numpy as np

from rvm_matting.errors import InvalidImageError, UnsupportedChannelLayoutError
from rvm_matting.tensor import TensorBuffer

logger = logging.getLogger("rvm.codec")

SUPPORTED_INPUT_CHANNELS = (1, 3, 4)
RESIZE_INTERPOLATION = cv2.INTER_LINEAR


class ChannelMode(str, enum.Enum):
    RGB = "rgb"
    ALPHA = "alpha"


@dataclass
class FramePixels:
    """An 8-bit image owned by whoever created it.

    pixels is a uint8 array shaped (height, width, channels).
    """
    width: int
    height: int
    channels: int
    pixels: np.ndarray

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "FramePixels":
        """Wrap a (H, W) or (H, W, C) array, inferring the dimensions."""
        if arr.ndim == 2:
            arr = arr[:, :, np.newaxis]
        if arr.ndim != 3:
            raise InvalidImageError(f"Expected a 2-D or 3-D pixel array, got {arr.ndim}-D")
        h, w, c = arr.shape
        return cls(width=w, height=h, channels=c, pixels=arr)

    def pixel(self, x: int, y: int) -> tuple:
        return tuple(int(v) for v in self.pixels[y, x])


def _resize(img: np.ndarray, width: int, height: int) -> np.ndarray:
    """Bilinear resize that keeps the channel axis (cv2 drops it for C == 1)."""
    h, w, c = img.shape
    if (w, h) == (width, height):
        return np.ascontiguousarray(img).copy()
    out = cv2.resize(img, (width, height), interpolation=RESIZE_INTERPOLATION)
    return out.reshape(height, width, c)


def _check_target(width: int, height: int):
    if width <= 0 or height <= 0:
        raise InvalidImageError(f"Target size must be positive, got {width}x{height}")


def validate_image(image: FramePixels):
    """Raise InvalidImageError unless image is a well-formed 8-bit frame."""
    if image.width <= 0 or image.height <= 0:
        raise InvalidImageError(f"Image has zero size: {image.width}x{image.height}")
    if image.channels not in SUPPORTED_INPUT_CHANNELS:
        raise InvalidImageError(
            f"Unsupported channel count {image.channels} "
            f"(expected one of {SUPPORTED_INPUT_CHANNELS})"
        )
    pixels = image.pixels
    if not isinstance(pixels, np.ndarray) or pixels.dtype != np.uint8:
        raise InvalidImageError("Pixel data must be a uint8 numpy array")
    expected = (image.height, image.width, image.channels)
    if pixels.shape != expected:
        raise InvalidImageError(
            f"Pixel array shape {pixels.shape} does not match declared {expected}"
        )


class ImageCodec:
    """Encodes frames into model input tensors and decodes model outputs."""

    def encode(self, image: FramePixels, target_width: int, target_height: int) -> TensorBuffer:
        """Resize image and lay it out as a [1, 3, H, W] float tensor in [0, 1]."""
        validate_image(image)
        _check_target(target_width, target_height)

        rgb = image.pixels
        if image.channels == 1:
            rgb = np.repeat(rgb, 3, axis=2)
        elif image.channels == 4:
            rgb = rgb[:, :, :3]

        resized = _resize(rgb, target_width, target_height)
        chw = np.transpose(resized.astype(np.float32) / 255.0, (2, 0, 1))
        return TensorBuffer(chw[np.newaxis])

    def decode(
        self,
        tensor,
        target_width: int,
        target_height: int,
        mode: ChannelMode = ChannelMode.RGB,
    ) -> FramePixels:
        """Turn a [1, C, H, W] tensor into an interleaved uint8 image.

        Accepts a TensorBuffer or a raw array; either way the result is freshly
        allocated and never aliases the source.
        """
        _check_target(target_width, target_height)
        arr = tensor.data if isinstance(tensor, TensorBuffer) else np.asarray(tensor)

        if arr.ndim != 4:
            raise UnsupportedChannelLayoutError(
                f"Expected a rank-4 NCHW tensor, got shape {list(arr.shape)}"
            )
        n, c, h, w = arr.shape
        if n != 1:
            raise UnsupportedChannelLayoutError(f"Expected batch size 1, got {n}")
        if c not in (1, 3):
            raise UnsupportedChannelLayoutError(f"Expected 1 or 3 channels, got {c}")
        if mode == ChannelMode.ALPHA and c != 1:
            raise UnsupportedChannelLayoutError(
                f"Alpha tensor must have exactly 1 channel, got {c}"
            )

        hwc = np.transpose(arr[0], (1, 2, 0)).astype(np.float32)
        # NaN from a diverged model decodes as 0
        hwc = np.clip(np.nan_to_num(hwc, nan=0.0, posinf=1.0, neginf=0.0), 0.0, 1.0)
        if mode == ChannelMode.RGB and c == 1:
            hwc = np.repeat(hwc, 3, axis=2)

        resized = _resize(hwc, target_width, target_height)
        pixels = np.floor(np.clip(resized, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
        return FramePixels.from_array(pixels)
