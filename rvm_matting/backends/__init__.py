"""Inference backends implementing the RVM named-tensor contract."""

from __future__ import annotations

from pathlib import Path

from rvm_matting.backends.base import (
    INPUT_NAMES,
    OUTPUT_NAMES,
    InferenceBackend,
    InferenceOutputs,
    input_mapping,
)
from rvm_matting.config import Settings

AVAILABLE_BACKENDS = ("onnxruntime", "openvino", "torchscript")


def create_backend(settings: Settings) -> InferenceBackend:
    """Build the backend named in settings.model.backend."""
    cfg = settings.model
    model_path = Path(cfg.path)

    if cfg.backend == "onnxruntime":
        from rvm_matting.backends.onnx_backend import OnnxRuntimeBackend
        return OnnxRuntimeBackend(
            model_path,
            providers=cfg.providers,
            intra_op_threads=cfg.intra_op_threads,
            inter_op_threads=cfg.inter_op_threads,
            graph_optimization=cfg.graph_optimization,
        )
    if cfg.backend == "openvino":
        from rvm_matting.backends.openvino_backend import OpenVINOBackend
        return OpenVINOBackend(model_path, device=cfg.device)
    if cfg.backend == "torchscript":
        from rvm_matting.backends.torchscript_backend import TorchScriptBackend
        return TorchScriptBackend(model_path, device=cfg.torch_device)

    raise ValueError(
        f"Unknown inference backend: {cfg.backend}. "
        f"Available: {list(AVAILABLE_BACKENDS)}"
    )


__all__ = [
    "AVAILABLE_BACKENDS",
    "INPUT_NAMES",
    "OUTPUT_NAMES",
    "InferenceBackend",
    "InferenceOutputs",
    "create_backend",
    "input_mapping",
]
