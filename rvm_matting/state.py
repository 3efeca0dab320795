"""Recurrent hidden-state lifecycle for RVM.

The four state tensors start as [1, 1, 1, 1] zeros, which the model treats as
"no prior frame". After each successful inference they are replaced by owned
copies of r1o..r4o; the backend's arrays are never retained because they are
only valid while its result handle is open.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Mapping, Sequence, Tuple

from rvm_matting.errors import MissingStateOutputError
from rvm_matting.tensor import NamedTensor, TensorBuffer

logger = logging.getLogger("rvm.state")

REC_INPUT_NAMES = ("r1i", "r2i", "r3i", "r4i")
REC_OUTPUT_NAMES = ("r1o", "r2o", "r3o", "r4o")
PLACEHOLDER_SHAPE = (1, 1, 1, 1)


class RecurrentState:
    """Immutable set of exactly four hidden-state tensors."""

    __slots__ = ("_tensors",)

    def __init__(self, tensors: Sequence[TensorBuffer]):
        tensors = tuple(tensors)
        if len(tensors) != len(REC_INPUT_NAMES):
            raise ValueError(
                f"Recurrent state needs {len(REC_INPUT_NAMES)} tensors, got {len(tensors)}"
            )
        for t in tensors:
            if not isinstance(t, TensorBuffer):
                raise TypeError(f"Recurrent state entries must be TensorBuffer, got {type(t).__name__}")
        self._tensors: Tuple[TensorBuffer, ...] = tensors

    def __getitem__(self, index: int) -> TensorBuffer:
        return self._tensors[index]

    def __len__(self) -> int:
        return len(self._tensors)

    def __iter__(self) -> Iterator[TensorBuffer]:
        return iter(self._tensors)

    @property
    def shapes(self):
        return [t.shape for t in self._tensors]

    @property
    def is_initial(self) -> bool:
        """True when every tensor is the zero placeholder."""
        return all(
            t.shape == PLACEHOLDER_SHAPE and t.item() == 0.0 for t in self._tensors
        )

    def as_named(self) -> List[NamedTensor]:
        """The current tensors tagged r1i..r4i."""
        return [NamedTensor(name, t) for name, t in zip(REC_INPUT_NAMES, self._tensors)]

    def as_inputs(self) -> dict:
        """Map r1i..r4i to the current tensors."""
        return {nt.name: nt.tensor for nt in self.as_named()}

    def __repr__(self) -> str:
        return f"RecurrentState(shapes={[list(s) for s in self.shapes]})"


class RecurrentStateStore:
    """Creates, advances and resets RecurrentState values."""

    def initial(self) -> RecurrentState:
        return RecurrentState(
            [TensorBuffer.zeros(PLACEHOLDER_SHAPE) for _ in REC_INPUT_NAMES]
        )

    def update(self, outputs: Mapping) -> RecurrentState:
        """Build the next state from a backend output mapping.

        Every entry is deep-copied into a new TensorBuffer. Shapes are taken
        as reported; they may change whenever the downsample ratio does.
        """
        missing = [name for name in REC_OUTPUT_NAMES if name not in outputs]
        if missing:
            raise MissingStateOutputError(missing)

        tensors = []
        for name in REC_OUTPUT_NAMES:
            value = outputs[name]
            src = value.data if isinstance(value, TensorBuffer) else value
            tensors.append(TensorBuffer(src))
        return RecurrentState(tensors)

    def reset(self) -> RecurrentState:
        logger.debug("Recurrent state reset to placeholder")
        return self.initial()
