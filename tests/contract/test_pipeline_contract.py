import json
from pathlib import Path

import numpy as np
import pytest

from scratchnet.core.errors import ConfigurationError
from scratchnet.training import pipelines


def _bars_config(run_dir):
    return {
        "data": {"name": "bars", "options": {"n_samples": 60, "size": 6, "seed": 2}},
        "model": {
            "layers": [
                {"type": "conv2d", "filters": 2, "kernel_size": [3, 3], "padding": 1},
                {"type": "pooling2d", "pool_size": [2, 2], "stride": 2},
                {"type": "flatten"},
                {"type": "dense", "units": 3, "activation": "softmax"},
            ]
        },
        "train": {
            "epochs": 2,
            "batch_size": 8,
            "validation_split": 0.2,
            "seed": 13,
            "optimizer": "adam",
            "lr": 0.01,
            "run_dir": str(run_dir),
            "enable_plots": False,
        },
    }


def test_pipeline_produces_artifacts(tmp_path):
    result = pipelines.run_pipeline(_bars_config(tmp_path / "run"))
    run_dir = tmp_path / "run"

    assert result.epochs == 2
    assert 0.0 <= result.test_accuracy <= 1.0
    for name in ("metrics.jsonl", "metrics.csv", "summary.json", "manifest.json", "last.ckpt", "config.json"):
        assert (run_dir / name).exists(), name

    records = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines()]
    assert [r["type"] for r in records] == ["epoch_end", "epoch_end", "completed"]
    assert all(r["seed"] == 13 for r in records)

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["dataset"]["type"] == "bars"
    assert [layer["kind"] for layer in manifest["layers"]] == [
        "input",
        "conv2d",
        "pooling2d",
        "flatten",
        "dense",
    ]

    summary = json.loads(Path(result.summary_path).read_text())
    assert summary["epochs"] == 2
    assert summary["status"] == "completed"

    with np.load(result.checkpoint_path) as payload:
        assert sorted(payload.files) == ["W1", "W4", "b1", "b4"]


def test_pipeline_outputs_are_deterministic(tmp_path):
    first = pipelines.run_pipeline(_bars_config(tmp_path / "a"))
    second = pipelines.run_pipeline(_bars_config(tmp_path / "b"))
    assert Path(first.metrics_path).read_bytes() == Path(second.metrics_path).read_bytes()
    assert Path(first.summary_path).read_bytes() == Path(second.summary_path).read_bytes()


def test_pipeline_resumes_from_checkpoint(tmp_path):
    first = pipelines.run_pipeline(_bars_config(tmp_path / "a"))
    config = _bars_config(tmp_path / "b")
    config["train"]["init_checkpoint"] = first.checkpoint_path
    config["train"]["epochs"] = 1
    second = pipelines.run_pipeline(config)
    assert second.epochs == 1


def test_pipeline_rejects_mismatched_output_width(tmp_path):
    config = _bars_config(tmp_path / "run")
    config["model"]["layers"][-1]["units"] = 5
    with pytest.raises(ConfigurationError):
        pipelines.run_pipeline(config)


def test_presets_include_builtin_and_file_presets():
    names = set(pipelines.presets())
    assert {"blobs-dense-sgd", "bars-cnn-rmsprop", "bars-cnn-adam"} <= names
    preset = pipelines.load_preset("bars-cnn-adam")
    assert preset["train"]["optimizer"] == "adam"
    with pytest.raises(KeyError):
        pipelines.load_preset("does-not-exist")


def test_build_layer_validates_entries():
    assert pipelines.build_layer({"type": "dense", "units": 4, "activation": "sigmoid"}).units == 4
    with pytest.raises(ConfigurationError):
        pipelines.build_layer({"type": "dropout"})
    with pytest.raises(ConfigurationError):
        pipelines.build_layer({"type": "dense"})
    with pytest.raises(ConfigurationError):
        pipelines.build_layer({"type": "dense", "units": 4, "activation": "gelu"})
