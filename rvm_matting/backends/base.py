"""Inference backend contract.

RVM graph signature (all float32):
    src [1,3,H,W], downsample_ratio [1], r1i..r4i
        -> fgr [1,3,H,W], pha [1,1,H,W], r1o..r4o

run() hands back an InferenceOutputs handle. Its arrays are borrowed from the
engine and are only valid until release(); consumers copy what they need
inside a ``with`` block.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, Mapping, Optional, Protocol, runtime_checkable

import numpy as np

from rvm_matting.errors import ResultReleasedError
from rvm_matting.tensor import NamedTensor, TensorBuffer

logger = logging.getLogger("rvm.backends")

INPUT_NAMES = ("src", "downsample_ratio", "r1i", "r2i", "r3i", "r4i")
OUTPUT_NAMES = ("fgr", "pha", "r1o", "r2o", "r3o", "r4o")


class InferenceOutputs(Mapping):
    """Scoped, read-only view of one run's named output arrays."""

    def __init__(self, arrays: Dict[str, np.ndarray], on_release=None):
        self._arrays: Optional[Dict[str, np.ndarray]] = dict(arrays)
        self._on_release = on_release

    @property
    def released(self) -> bool:
        return self._arrays is None

    def _live(self) -> Dict[str, np.ndarray]:
        if self._arrays is None:
            raise ResultReleasedError("Inference result handle has been released")
        return self._arrays

    def __getitem__(self, name: str) -> np.ndarray:
        return self._live()[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._live())

    def __len__(self) -> int:
        return len(self._live())

    def __contains__(self, name) -> bool:
        return name in self._live()

    def release(self):
        """Drop the borrowed arrays and let the engine reclaim them."""
        if self._arrays is None:
            return
        self._arrays = None
        if self._on_release is not None:
            callback, self._on_release = self._on_release, None
            callback()

    def __enter__(self) -> "InferenceOutputs":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


@runtime_checkable
class InferenceBackend(Protocol):
    """Anything that can execute the RVM graph on named tensors."""

    def run(self, inputs: Mapping[str, TensorBuffer]) -> InferenceOutputs:
        ...

    def close(self) -> None:
        ...


def to_feed(inputs: Mapping[str, TensorBuffer]) -> Dict[str, np.ndarray]:
    """Writable float32 copies of the inputs, keyed by contract name."""
    return {name: tensor.to_numpy() for name, tensor in inputs.items()}


def input_mapping(named: Iterable[NamedTensor]) -> Dict[str, TensorBuffer]:
    """Key tensors by contract name; every name in INPUT_NAMES must be present."""
    inputs = {nt.name: nt.tensor for nt in named}
    missing = [name for name in INPUT_NAMES if name not in inputs]
    if missing:
        raise ValueError(f"Missing backend inputs: {', '.join(missing)}")
    return inputs
