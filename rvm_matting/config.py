"""Pydantic Settings configuration for the RVM matting pipeline.

Parses config/settings.yaml (or the file named by RVM_CONFIG) into typed
sections; any section missing from the file keeps its defaults.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings


class ModelConfig(BaseSettings):
    """Inference engine settings (consumed by the backend, not the core)."""

    # "path" would otherwise be read from $PATH
    model_config = {"env_prefix": "RVM_MODEL_"}

    backend: str = "onnxruntime"  # "onnxruntime", "openvino" or "torchscript"
    path: str = "models/rvm_mobilenetv3_fp32.onnx"
    providers: List[str] = Field(default_factory=lambda: [
        "CUDAExecutionProvider", "CPUExecutionProvider",
    ])
    intra_op_threads: int = 4
    inter_op_threads: int = 4
    graph_optimization: str = "all"  # "disable", "basic", "extended", "all"
    device: str = "CPU"              # OpenVINO device: "CPU", "GPU", ...
    torch_device: str = "cuda:0"     # torch device string: "cpu", "cuda:0", ...


class PipelineConfig(BaseSettings):
    input_width: int = 512
    input_height: int = 512
    downsample_ratio: float = 0.25  # Lower = faster, less accurate edges


class AdaptiveConfig(BaseSettings):
    """Automatic downsample-ratio tuning against a frame time budget."""
    enabled: bool = False
    target_frame_ms: float = 33.0
    step: float = 0.05
    tolerance: float = 0.15
    window: int = 10


class OutputConfig(BaseSettings):
    green_color: List[int] = Field(default_factory=lambda: [0, 177, 64])
    green_screen: bool = False  # Flatten onto green_color instead of writing RGBA


class LoggingConfig(BaseSettings):
    level: str = "INFO"
    log_dir: str = "logs"
    log_file: str = "rvm_matting.log"


class Settings(BaseSettings):
    """Root settings class that aggregates all configuration."""

    model_config = {"extra": "ignore"}

    model: ModelConfig = Field(default_factory=ModelConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    adaptive: AdaptiveConfig = Field(default_factory=AdaptiveConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from a YAML file, falling back to defaults."""
        if config_path is None:
            env_path = os.environ.get("RVM_CONFIG")
            if env_path:
                config_path = Path(env_path)
            else:
                config_path = Path(__file__).parent.parent / "config" / "settings.yaml"

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        return cls(**raw)


# Module-level singleton (lazy-loaded)
_settings: Optional[Settings] = None


def get_settings(config_path: Optional[Path] = None) -> Settings:
    """Get or create the global Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.from_yaml(config_path)
    return _settings
