"""Owned float32 tensor buffers exchanged with the inference backend.

A TensorBuffer always owns its storage: the constructor copies whatever it is
given, and the stored array is read-only. Backend output arrays can therefore
be wrapped safely even though the backend is free to reuse them once its
result handle is released.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np


class TensorBuffer:
    """A shaped, contiguous float32 buffer with an immutable shape."""

    __slots__ = ("_data",)

    def __init__(self, data, shape: Optional[Sequence[int]] = None):
        arr = np.array(data, dtype=np.float32, copy=True, order="C")
        if shape is not None:
            shape = tuple(int(d) for d in shape)
            if arr.size != math.prod(shape):
                raise ValueError(
                    f"Data length {arr.size} does not match shape {list(shape)} "
                    f"(expected {math.prod(shape)})"
                )
            arr = arr.reshape(shape)
        if arr.ndim == 0:
            arr = arr.reshape(1)
        if any(d <= 0 for d in arr.shape):
            raise ValueError(f"Tensor dimensions must be positive, got {list(arr.shape)}")
        arr.flags.writeable = False
        self._data = arr

    @classmethod
    def zeros(cls, shape: Iterable[int]) -> "TensorBuffer":
        shape = tuple(shape)
        return cls(np.zeros(shape, dtype=np.float32))

    @classmethod
    def scalar(cls, value: float) -> "TensorBuffer":
        """A 1-element buffer of shape [1]."""
        return cls([value], shape=(1,))

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._data.shape

    @property
    def size(self) -> int:
        return self._data.size

    @property
    def data(self) -> np.ndarray:
        """Read-only view of the owned storage."""
        return self._data

    def to_numpy(self) -> np.ndarray:
        """Writable copy of the buffer, for handing to an engine."""
        return self._data.copy()

    def item(self) -> float:
        if self._data.size != 1:
            raise ValueError(f"item() needs a 1-element tensor, shape is {list(self.shape)}")
        return float(self._data.reshape(-1)[0])

    def equals(self, other: "TensorBuffer") -> bool:
        return self.shape == other.shape and bool(np.array_equal(self._data, other._data))

    def __repr__(self) -> str:
        return f"TensorBuffer(shape={list(self.shape)})"


@dataclass(frozen=True)
class NamedTensor:
    """A tensor tagged with its backend contract name (src, pha, r1o, ...)."""
    name: str
    tensor: TensorBuffer
