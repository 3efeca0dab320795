"""OpenVINO backend for RobustVideoMatting.

Loads the ONNX model (or an OpenVINO IR .xml next to it) and compiles it for
the configured device. Targets Intel GPUs; drops to CPU when the requested
device is not present.

The infer request owns its output tensors and overwrites them on the next
infer() call, so results are exposed as borrowed views and must be copied
out before release.

Requires: openvino>=2024.6.0, numpy
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Mapping

from rvm_matting.backends.base import OUTPUT_NAMES, InferenceOutputs, to_feed
from rvm_matting.tensor import TensorBuffer

logger = logging.getLogger("rvm.backends.openvino")

# Lazy import
_ov = None


def _import_ov():
    global _ov
    if _ov is None:
        import openvino as _ov
    return _ov


class OpenVINOBackend:
    """OpenVINO compiled-model runner for the RVM graph."""

    def __init__(self, model_path: Path, device: str = "GPU"):
        model_path = Path(model_path)

        # Auto-detect FP16 IR model alongside ONNX
        if model_path.suffix == ".onnx":
            fp16_ir = model_path.with_name(model_path.stem + "_fp16_ov.xml")
            if fp16_ir.exists():
                logger.info("Found FP16 IR model, using: %s", fp16_ir)
                model_path = fp16_ir

        if not model_path.exists():
            raise FileNotFoundError(f"Model not found: {model_path}")

        ov = _import_ov()
        core = ov.Core()

        available = core.available_devices
        logger.info("OpenVINO available devices: %s", available)
        if device not in available:
            logger.warning(
                "Device %s not available (have: %s), falling back to CPU",
                device, available,
            )
            device = "CPU"
        self.device = device

        start = time.time()
        model = core.read_model(str(model_path))
        config = {"PERFORMANCE_HINT": "LATENCY"} if device == "GPU" else {}
        self._compiled_model = core.compile_model(model, device, config)
        self._infer_request = self._compiled_model.create_infer_request()
        self.model_path = model_path
        logger.info("Model %s compiled for %s in %.2fs", model_path.name, device, time.time() - start)

    def run(self, inputs: Mapping[str, TensorBuffer]) -> InferenceOutputs:
        if self._infer_request is None:
            raise RuntimeError("OpenVINO model not loaded")
        self._infer_request.infer(to_feed(inputs))
        arrays = {
            name: self._infer_request.get_tensor(name).data for name in OUTPUT_NAMES
        }
        return InferenceOutputs(arrays)

    def close(self):
        """Release OpenVINO resources."""
        self._infer_request = None
        self._compiled_model = None
        logger.info("OpenVINO engine resources released")
