"""Tests for ImageCodec encode/decode."""

import math
import warnings

import numpy as np
import pytest

from rvm_matting.codec import ChannelMode, FramePixels, ImageCodec
from rvm_matting.errors import InvalidImageError, UnsupportedChannelLayoutError
from rvm_matting.tensor import TensorBuffer


@pytest.fixture
def codec():
    return ImageCodec()


class TestEncode:

    def test_channel_major_layout(self, codec):
        """All red values, then green, then blue; row-major within each."""
        pixels = np.zeros((2, 3, 3), dtype=np.uint8)
        pixels[..., 0] = [[0, 1, 2], [3, 4, 5]]
        pixels[..., 1] = 100
        pixels[..., 2] = 255
        t = codec.encode(FramePixels.from_array(pixels), 3, 2)

        assert t.shape == (1, 3, 2, 3)
        flat = t.data.reshape(-1)
        np.testing.assert_allclose(flat[:6], np.arange(6) / 255.0, rtol=1e-6)
        np.testing.assert_allclose(flat[6:12], 100 / 255.0, rtol=1e-6)
        np.testing.assert_allclose(flat[12:], 1.0)

    def test_values_normalised(self, codec, random_frame):
        t = codec.encode(random_frame, 16, 12)
        assert t.data.min() >= 0.0
        assert t.data.max() <= 1.0
        assert t.size == math.prod(t.shape)

    def test_resize_to_target(self, codec, rgb_frame):
        t = codec.encode(rgb_frame, 8, 6)
        assert t.shape == (1, 3, 6, 8)

    def test_rgba_drops_alpha(self, codec):
        pixels = np.zeros((2, 2, 4), dtype=np.uint8)
        pixels[..., 0] = 255
        pixels[..., 3] = 17
        t = codec.encode(FramePixels.from_array(pixels), 2, 2)
        assert t.shape == (1, 3, 2, 2)
        assert np.all(t.data[0, 0] == 1.0)
        assert np.all(t.data[0, 1:] == 0.0)

    def test_grey_replicated(self, codec):
        pixels = np.full((2, 2), 51, dtype=np.uint8)
        t = codec.encode(FramePixels.from_array(pixels), 2, 2)
        np.testing.assert_allclose(t.data, 0.2, rtol=1e-6)

    def test_zero_size_raises(self, codec):
        image = FramePixels(width=0, height=4, channels=3, pixels=np.zeros((4, 0, 3), dtype=np.uint8))
        with pytest.raises(InvalidImageError, match="zero size"):
            codec.encode(image, 8, 8)

    def test_mismatched_channels_raises(self, codec):
        image = FramePixels(width=2, height=2, channels=3, pixels=np.zeros((2, 2, 4), dtype=np.uint8))
        with pytest.raises(InvalidImageError, match="does not match"):
            codec.encode(image, 2, 2)

    def test_unsupported_channel_count_raises(self, codec):
        image = FramePixels.from_array(np.zeros((2, 2, 2), dtype=np.uint8))
        with pytest.raises(InvalidImageError, match="channel count"):
            codec.encode(image, 2, 2)

    def test_non_uint8_raises(self, codec):
        image = FramePixels.from_array(np.zeros((2, 2, 3), dtype=np.float32))
        with pytest.raises(InvalidImageError, match="uint8"):
            codec.encode(image, 2, 2)

    def test_bad_target_raises(self, codec, rgb_frame):
        with pytest.raises(InvalidImageError):
            codec.encode(rgb_frame, 0, 12)


class TestDecode:

    def test_rgb_interleaved(self, codec):
        data = np.zeros((1, 3, 1, 2), dtype=np.float32)
        data[0, 0] = [1.0, 0.0]
        data[0, 2] = [0.0, 1.0]
        frame = codec.decode(TensorBuffer(data), 2, 1, ChannelMode.RGB)
        assert frame.channels == 3
        assert frame.pixel(0, 0) == (255, 0, 0)
        assert frame.pixel(1, 0) == (0, 0, 255)

    def test_values_clamped(self, codec):
        data = np.array([-0.5, 1.7], dtype=np.float32).reshape(1, 1, 1, 2)
        frame = codec.decode(TensorBuffer(data), 2, 1, ChannelMode.ALPHA)
        assert frame.pixel(0, 0) == (0,)
        assert frame.pixel(1, 0) == (255,)

    def test_alpha_single_channel(self, codec):
        data = np.array([0.0, 0.25, 0.75, 1.0], dtype=np.float32).reshape(1, 1, 2, 2)
        frame = codec.decode(TensorBuffer(data), 2, 2, ChannelMode.ALPHA)
        assert frame.channels == 1
        assert frame.pixels[:, :, 0].tolist() == [[0, 64], [191, 255]]

    def test_grey_to_rgb_replicates(self, codec):
        data = np.full((1, 1, 2, 2), 0.5, dtype=np.float32)
        frame = codec.decode(TensorBuffer(data), 2, 2, ChannelMode.RGB)
        assert frame.channels == 3
        assert frame.pixel(1, 1) == (128, 128, 128)

    def test_resizes_to_target(self, codec):
        data = np.full((1, 3, 6, 8), 0.6, dtype=np.float32)
        frame = codec.decode(TensorBuffer(data), 16, 12, ChannelMode.RGB)
        assert (frame.width, frame.height) == (16, 12)
        assert np.all(frame.pixels == 153)

    def test_decode_copies_raw_array(self, codec):
        """Decoding a backend array does not alias it."""
        raw = np.full((1, 1, 2, 2), 1.0, dtype=np.float32)
        frame = codec.decode(raw, 2, 2, ChannelMode.ALPHA)
        raw[...] = 0.0
        assert np.all(frame.pixels == 255)

    def test_rank_not_four_raises(self, codec):
        with pytest.raises(UnsupportedChannelLayoutError, match="rank-4"):
            codec.decode(TensorBuffer(np.zeros((3, 2, 2))), 2, 2)

    def test_unsupported_channels_raises(self, codec):
        with pytest.raises(UnsupportedChannelLayoutError, match="1 or 3"):
            codec.decode(TensorBuffer(np.zeros((1, 2, 2, 2))), 2, 2)

    def test_alpha_with_three_channels_raises(self, codec):
        with pytest.raises(UnsupportedChannelLayoutError, match="exactly 1"):
            codec.decode(TensorBuffer(np.zeros((1, 3, 2, 2))), 2, 2, ChannelMode.ALPHA)

    def test_batch_not_one_raises(self, codec):
        with pytest.raises(UnsupportedChannelLayoutError, match="batch"):
            codec.decode(TensorBuffer(np.zeros((2, 3, 2, 2))), 2, 2)

    def test_non_finite_values_are_deterministic(self, codec):
        data = np.array([np.nan, 0.5, np.inf, -np.inf], dtype=np.float32).reshape(1, 1, 1, 4)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            frame = codec.decode(data, 4, 1, ChannelMode.ALPHA)
        assert frame.pixels[0, :, 0].tolist() == [0, 128, 255, 0]


class TestRoundTrip:

    def test_same_size_is_exact(self, codec, random_frame):
        t = codec.encode(random_frame, 16, 12)
        frame = codec.decode(t, 16, 12, ChannelMode.RGB)
        np.testing.assert_array_equal(frame.pixels, random_frame.pixels)

    def test_resized_within_tolerance(self, codec, rgb_frame):
        """Up to model size and back stays within 2/255 per channel."""
        t = codec.encode(rgb_frame, 32, 24)
        frame = codec.decode(t, 16, 12, ChannelMode.RGB)
        diff = np.abs(frame.pixels.astype(int) - rgb_frame.pixels.astype(int))
        assert diff.max() <= 2
