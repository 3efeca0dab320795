"""Tests for configuration loading."""

from pathlib import Path

from rvm_matting import config as config_module
from rvm_matting.config import Settings, get_settings


def test_default_settings():
    """Settings can be created with defaults."""
    s = Settings()
    assert s.model.backend == "onnxruntime"
    assert s.model.intra_op_threads == 4
    assert s.model.inter_op_threads == 4
    assert s.model.graph_optimization == "all"
    assert s.model.device == "CPU"
    assert s.model.torch_device == "cuda:0"
    assert s.pipeline.input_width == 512
    assert s.pipeline.input_height == 512
    assert s.pipeline.downsample_ratio == 0.25
    assert s.adaptive.enabled is False
    assert s.output.green_color == [0, 177, 64]


def test_from_yaml():
    """Settings.from_yaml parses the real settings.yaml."""
    config_path = Path(__file__).parent.parent / "config" / "settings.yaml"
    s = Settings.from_yaml(config_path)
    assert s.model.path == "models/rvm_mobilenetv3_fp32.onnx"
    assert s.model.providers == ["CUDAExecutionProvider", "CPUExecutionProvider"]
    assert s.pipeline.downsample_ratio == 0.25
    assert s.logging.log_file == "rvm_matting.log"
    assert s.model.torch_device == "cuda:0"


def test_from_yaml_missing():
    """Settings.from_yaml with missing file returns defaults."""
    s = Settings.from_yaml(Path("/nonexistent/config.yaml"))
    assert s.pipeline.input_width == 512


def test_from_yaml_partial(tmp_path):
    """Sections absent from the file keep their defaults."""
    cfg = tmp_path / "settings.yaml"
    cfg.write_text("pipeline:\n  input_width: 640\n  downsample_ratio: 0.4\n")
    s = Settings.from_yaml(cfg)
    assert s.pipeline.input_width == 640
    assert s.pipeline.input_height == 512
    assert s.pipeline.downsample_ratio == 0.4
    assert s.model.backend == "onnxruntime"


def test_from_yaml_empty_file(tmp_path):
    cfg = tmp_path / "settings.yaml"
    cfg.write_text("")
    assert Settings.from_yaml(cfg).model.backend == "onnxruntime"


def test_env_var_config_path(tmp_path, monkeypatch):
    cfg = tmp_path / "custom.yaml"
    cfg.write_text("model:\n  backend: openvino\n  device: GPU\n")
    monkeypatch.setenv("RVM_CONFIG", str(cfg))
    s = Settings.from_yaml()
    assert s.model.backend == "openvino"
    assert s.model.device == "GPU"


def test_model_path_ignores_system_path(monkeypatch):
    monkeypatch.setenv("PATH", "/usr/bin:/bin")
    assert Settings().model.path == "models/rvm_mobilenetv3_fp32.onnx"


def test_get_settings_is_cached(tmp_path, monkeypatch):
    monkeypatch.setattr(config_module, "_settings", None)
    first = get_settings(tmp_path / "missing.yaml")
    assert get_settings() is first
