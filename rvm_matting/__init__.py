"""Per-frame Robust Video Matting inference pipeline."""

from rvm_matting.codec import ChannelMode, FramePixels, ImageCodec
from rvm_matting.compositor import MattingResult, composite, flatten_on_color
from rvm_matting.errors import (
    DimensionMismatchError,
    InferenceError,
    InvalidImageError,
    MattingError,
    MissingStateOutputError,
    ResultReleasedError,
    UnsupportedChannelLayoutError,
)
from rvm_matting.pipeline import MattingPipeline
from rvm_matting.ratio import RatioController
from rvm_matting.state import RecurrentState, RecurrentStateStore
from rvm_matting.tensor import NamedTensor, TensorBuffer

__version__ = "0.1.0"

__all__ = [
    "ChannelMode",
    "DimensionMismatchError",
    "FramePixels",
    "ImageCodec",
    "InferenceError",
    "InvalidImageError",
    "MattingError",
    "MattingPipeline",
    "MattingResult",
    "MissingStateOutputError",
    "NamedTensor",
    "RatioController",
    "RecurrentState",
    "RecurrentStateStore",
    "ResultReleasedError",
    "TensorBuffer",
    "UnsupportedChannelLayoutError",
    "composite",
    "flatten_on_color",
]
