"""ONNX Runtime backend for RobustVideoMatting.

Loads an exported RVM .onnx graph (e.g. rvm_mobilenetv3_fp32.onnx) and runs it
with the named-tensor contract from backends.base. Execution providers are
used in the order given; choosing them is the caller's job.

Requires: onnxruntime (or onnxruntime-gpu)
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import List, Mapping, Optional

from rvm_matting.backends.base import OUTPUT_NAMES, InferenceOutputs, to_feed
from rvm_matting.tensor import TensorBuffer

logger = logging.getLogger("rvm.backends.onnx")

# Lazy import
_ort = None


def _import_ort():
    global _ort
    if _ort is None:
        import onnxruntime as _ort
    return _ort


GRAPH_OPTIMIZATION_LEVELS = {
    "disable": "ORT_DISABLE_ALL",
    "basic": "ORT_ENABLE_BASIC",
    "extended": "ORT_ENABLE_EXTENDED",
    "all": "ORT_ENABLE_ALL",
}


class OnnxRuntimeBackend:
    """Runs the RVM graph in an onnxruntime InferenceSession."""

    def __init__(
        self,
        model_path: Path,
        providers: Optional[List[str]] = None,
        intra_op_threads: int = 4,
        inter_op_threads: int = 4,
        graph_optimization: str = "all",
    ):
        model_path = Path(model_path)
        if not model_path.exists():
            raise FileNotFoundError(f"ONNX model not found: {model_path}")
        if graph_optimization not in GRAPH_OPTIMIZATION_LEVELS:
            raise ValueError(
                f"Unknown graph optimization level: {graph_optimization}. "
                f"Available: {list(GRAPH_OPTIMIZATION_LEVELS)}"
            )

        ort = _import_ort()
        available = ort.get_available_providers()
        logger.info("ONNX Runtime available providers: %s", available)

        options = ort.SessionOptions()
        options.intra_op_num_threads = intra_op_threads
        options.inter_op_num_threads = inter_op_threads
        options.graph_optimization_level = getattr(
            ort.GraphOptimizationLevel, GRAPH_OPTIMIZATION_LEVELS[graph_optimization]
        )

        start = time.time()
        self._session = ort.InferenceSession(
            str(model_path),
            sess_options=options,
            providers=list(providers) if providers else None,
        )
        self.model_path = model_path
        logger.info(
            "Loaded RVM model %s in %.2fs (providers=%s)",
            model_path.name, time.time() - start, self._session.get_providers(),
        )

    def run(self, inputs: Mapping[str, TensorBuffer]) -> InferenceOutputs:
        if self._session is None:
            raise RuntimeError("ONNX session is closed")
        results = self._session.run(list(OUTPUT_NAMES), to_feed(inputs))
        return InferenceOutputs(dict(zip(OUTPUT_NAMES, results)))

    def close(self):
        """Release the ONNX session."""
        self._session = None
        logger.info("ONNX Runtime session released")
