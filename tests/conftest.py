"""Shared fixtures for RVM matting tests."""

import numpy as np
import pytest

from rvm_matting.backends.base import InferenceOutputs
from rvm_matting.codec import FramePixels
from rvm_matting.pipeline import MattingPipeline
from rvm_matting.state import REC_OUTPUT_NAMES


class FakeBackend:
    """Deterministic stand-in for an RVM engine.

    fgr echoes src, pha is the channel mean of src, and r{n}o is filled with
    the 1-based call number so state threading can be traced. Output arrays
    are zeroed when the result handle is released, like an engine reusing
    its buffers.
    """

    def __init__(self, fail_on=(), omit=(), pha_channels=1):
        self.fail_on = set(fail_on)
        self.omit = set(omit)
        self.pha_channels = pha_channels
        self.calls = []
        self.released = 0
        self.closed = False
        self.last_arrays = None

    def run(self, inputs):
        call = len(self.calls)
        self.calls.append({name: t.to_numpy() for name, t in inputs.items()})
        if call in self.fail_on:
            raise RuntimeError(f"device lost on call {call}")

        src = inputs["src"].to_numpy()
        ratio = inputs["downsample_ratio"].item()
        side = max(1, int(round(8 * ratio)))

        arrays = {
            "fgr": src.copy(),
            "pha": np.repeat(src.mean(axis=1, keepdims=True), self.pha_channels, axis=1),
        }
        for i, name in enumerate(REC_OUTPUT_NAMES):
            arrays[name] = np.full((1, 4 * (i + 1), side, side), call + 1, dtype=np.float32)
        for name in self.omit:
            arrays.pop(name, None)
        self.last_arrays = arrays

        def _release():
            self.released += 1
            for arr in arrays.values():
                arr[...] = 0.0

        return InferenceOutputs(arrays, on_release=_release)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def pipeline(fake_backend):
    """Pipeline whose model input size matches the sample frames (16x12)."""
    return MattingPipeline(fake_backend, input_width=16, input_height=12, downsample_ratio=0.25)


@pytest.fixture
def rgb_frame():
    """A 16x12 RGB frame with a gentle gradient per channel."""
    ys, xs = np.mgrid[0:12, 0:16]
    pixels = np.stack([
        40 + xs * 2,
        60 + ys * 3,
        200 - xs - ys,
    ], axis=2).astype(np.uint8)
    return FramePixels.from_array(pixels)


@pytest.fixture
def random_frame():
    rng = np.random.default_rng(1234)
    return FramePixels.from_array(rng.integers(0, 256, (12, 16, 3), dtype=np.uint8))
