"""Alpha compositing of decoded foreground and alpha frames."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from rvm_matting.codec import FramePixels
from rvm_matting.errors import DimensionMismatchError

# Chroma key green
DEFAULT_BACKGROUND = (0, 177, 64)


def composite(foreground: FramePixels, alpha: FramePixels) -> FramePixels:
    """Stack RGB foreground and alpha channel 0 into an RGBA frame.

    Straight (non-premultiplied) alpha: composite RGB equals the foreground
    RGB byte for byte.
    """
    if (foreground.width, foreground.height) != (alpha.width, alpha.height):
        raise DimensionMismatchError(
            f"Foreground is {foreground.width}x{foreground.height} but alpha is "
            f"{alpha.width}x{alpha.height}"
        )
    rgba = np.empty((foreground.height, foreground.width, 4), dtype=np.uint8)
    rgba[:, :, :3] = foreground.pixels[:, :, :3]
    rgba[:, :, 3] = alpha.pixels[:, :, 0]
    return FramePixels.from_array(rgba)


def flatten_on_color(rgba: FramePixels, color: Sequence[int] = DEFAULT_BACKGROUND) -> FramePixels:
    """Blend an RGBA frame over a solid colour, returning RGB."""
    if rgba.channels != 4:
        raise DimensionMismatchError(f"Expected an RGBA frame, got {rgba.channels} channels")
    fg = rgba.pixels[:, :, :3].astype(np.float32)
    a = rgba.pixels[:, :, 3:4].astype(np.float32) / 255.0
    bg = np.asarray(color, dtype=np.float32).reshape(1, 1, 3)
    out = fg * a + bg * (1.0 - a)
    return FramePixels.from_array(np.clip(np.rint(out), 0, 255).astype(np.uint8))


@dataclass(frozen=True)
class MattingResult:
    """Outputs of one successfully processed frame."""
    foreground: FramePixels
    alpha: FramePixels
    composite: FramePixels
    frame_index: int = 0

    def on_background(self, color: Sequence[int] = DEFAULT_BACKGROUND) -> FramePixels:
        """Green-screen style output: the composite flattened over color."""
        return flatten_on_color(self.composite, color)
