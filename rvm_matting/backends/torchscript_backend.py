"""RVM TorchScript backend.

The TorchScript model takes positional arguments
``(src, r1, r2, r3, r4, downsample_ratio)`` and expects ``None`` for the
recurrent inputs on the first frame, so the [1, 1, 1, 1] placeholder state is
translated to ``None`` here.
"""

import logging
from pathlib import Path
from typing import Mapping

try:
    import torch
except ImportError:
    torch = None  # Tests can mock this

from rvm_matting.backends.base import OUTPUT_NAMES, InferenceOutputs
from rvm_matting.state import PLACEHOLDER_SHAPE, REC_INPUT_NAMES
from rvm_matting.tensor import TensorBuffer

logger = logging.getLogger("rvm.backends.torchscript")


class TorchScriptBackend:
    """Wraps a TorchScript RVM model."""

    def __init__(self, model_path: Path, device: str = "cuda:0"):
        model_path = Path(model_path)
        if not model_path.exists():
            raise FileNotFoundError(f"RVM model file not found: {model_path}")
        if torch is None:
            raise RuntimeError("torch is not installed")

        self.device = device
        self.model = torch.jit.load(str(model_path), map_location=device)
        self.model.eval()
        self.model_path = model_path
        logger.info("Loaded RVM TorchScript model %s (device=%s)", model_path.name, device)

    def _to_torch(self, tensor: TensorBuffer):
        return torch.from_numpy(tensor.to_numpy()).to(self.device)

    def run(self, inputs: Mapping[str, TensorBuffer]) -> InferenceOutputs:
        if self.model is None:
            raise RuntimeError("TorchScript model is closed")
        src = self._to_torch(inputs["src"])
        rec = []
        for name in REC_INPUT_NAMES:
            t = inputs[name]
            is_placeholder = t.shape == PLACEHOLDER_SHAPE and t.item() == 0.0
            rec.append(None if is_placeholder else self._to_torch(t))
        ratio = inputs["downsample_ratio"].item()

        with torch.no_grad():
            outputs = self.model(src, *rec, ratio)

        arrays = {
            name: out.detach().float().cpu().numpy()
            for name, out in zip(OUTPUT_NAMES, outputs)
        }
        return InferenceOutputs(arrays)

    def close(self):
        self.model = None
        if torch is not None and torch.cuda.is_available():
            torch.cuda.empty_cache()
        logger.info("TorchScript model released")
