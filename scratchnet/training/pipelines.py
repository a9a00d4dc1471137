"""Pipeline assembly: config -> dataset + network -> trained run artifacts."""

from __future__ import annotations

import json
import logging
import math
import time
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

from ..core.errors import ConfigurationError
from ..core.types import FitParams, RunResult, TensorShape
from ..data import get_dataset
from ..layers import Convolutional2d, Dense, Flatten, Input, Pooling2d
from ..layers.base import Layer
from ..optimizers import build_optimizer
from ..reporting import CsvSink, JsonlSink, LoggingSink, PlotAdapter, write_manifest, write_summary
from .metrics import accuracy
from .network import Network, samples_from

logger = logging.getLogger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "blobs-dense-sgd": {
        "data": {"name": "blobs", "options": {"n_samples": 300, "n_classes": 3, "seed": 0}},
        "model": {
            "layers": [
                {"type": "dense", "units": 16, "activation": "relu"},
                {"type": "dense", "units": 3, "activation": "softmax"},
            ]
        },
        "train": {
            "epochs": 10,
            "batch_size": 16,
            "validation_split": 0.2,
            "seed": 7,
            "optimizer": "sgd",
            "lr": 0.1,
            "run_dir": "runs/blobs-dense-sgd",
            "enable_plots": False,
        },
    },
    "bars-cnn-rmsprop": {
        "data": {"name": "bars", "options": {"n_samples": 240, "size": 8, "seed": 0}},
        "model": {
            "layers": [
                {"type": "conv2d", "filters": 4, "kernel_size": [3, 3], "padding": 1, "stride": 1},
                {"type": "pooling2d", "pool_size": [2, 2], "stride": 2, "method": "max"},
                {"type": "flatten"},
                {"type": "dense", "units": 16, "activation": "relu"},
                {"type": "dense", "units": 3, "activation": "softmax"},
            ]
        },
        "train": {
            "epochs": 5,
            "batch_size": 16,
            "validation_split": 0.1,
            "seed": 1,
            "optimizer": "rmsprop",
            "lr": 0.001,
            "run_dir": "runs/bars-cnn-rmsprop",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None


def _read_preset_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported preset file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Preset {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        presets: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = _read_preset_file(file)
                missing = {"data", "model", "train"} - set(data)
                if missing:
                    missing_str = ", ".join(sorted(missing))
                    raise KeyError(f"Preset {file.name} is missing required sections: {missing_str}")
                presets[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = presets
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


# ----------------------------------------------------------------------
# Builders


def build_layer(spec: Mapping[str, Any]) -> Layer:
    """Instantiate one layer from its config entry."""

    options = dict(spec)
    kind = str(options.pop("type", "")).lower()
    try:
        if kind == "input":
            return Input(options["shape"])
        if kind == "dense":
            return Dense(int(options.pop("units")), **options)
        if kind == "conv2d":
            return Convolutional2d(int(options.pop("filters")), **options)
        if kind == "pooling2d":
            return Pooling2d(**options)
        if kind == "flatten":
            return Flatten(**options)
    except (KeyError, TypeError) as exc:
        raise ConfigurationError(f"Invalid options for layer {spec!r}: {exc}") from exc
    raise ConfigurationError(f"Unknown layer type: {kind or spec!r}")


def build_optimizer_from(train_cfg: Mapping[str, Any]):
    options = dict(train_cfg.get("optimizer_options", {}))
    options.setdefault("learning_rate", float(train_cfg.get("lr", 0.01)))
    return build_optimizer(str(train_cfg.get("optimizer", "sgd")), **options)


def build_network(
    model_cfg: Mapping[str, Any],
    input_shape: TensorShape,
    train_cfg: Mapping[str, Any],
    seed: int,
) -> Network:
    """Build and initialize the network described by ``model_cfg``.

    An ``Input`` layer for ``input_shape`` is prepended unless the layer list
    already starts with one.
    """

    specs: Sequence[Mapping[str, Any]] = model_cfg.get("layers", [])
    layers: List[Layer] = [build_layer(spec) for spec in specs]
    if not layers or layers[0].kind != "input":
        layers.insert(0, Input(input_shape))
    network = Network(layers, build_optimizer_from(train_cfg), seed=seed)
    network.initialize()
    return network


# ----------------------------------------------------------------------
# Running


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    seed = int(train_cfg.get("seed", 0))
    dataset = get_dataset(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    network = build_network(model_cfg, dataset.input_shape, train_cfg, seed)
    if network.layers[-1].output_shape != dataset.num_classes:
        raise ConfigurationError(
            f"Output layer has {network.layers[-1].output_shape} units but dataset "
            f"{dataset.name!r} has {dataset.num_classes} classes"
        )
    init_checkpoint = train_cfg.get("init_checkpoint")
    if init_checkpoint:
        network.load_checkpoint(init_checkpoint)
        logger.info("Loaded initial weights from %s", init_checkpoint)

    params = FitParams(
        epochs=int(train_cfg.get("epochs", 1)),
        batch_size=int(train_cfg.get("batch_size", 32)),
        validation_split=float(train_cfg.get("validation_split", 0.1)),
    )
    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    _print_startup_summary(
        dataset_name=dataset.name,
        network=network,
        optimizer=str(train_cfg.get("optimizer", "sgd")),
        params=params,
    )

    jsonl = JsonlSink(run_dir / "metrics.jsonl", seed=seed)
    csv_sink = CsvSink(run_dir / "metrics.csv")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    sinks = [jsonl, csv_sink, LoggingSink(), plots]

    stream = network.fit(dataset.inputs, dataset.targets, params)
    terminal = None
    for event in stream:
        for sink in sinks:
            sink.on_event(event)
        terminal = event
    plots.close()
    summary_path = write_summary(jsonl.path, run_dir / "summary.json")
    if stream.error is not None:
        raise stream.error

    test_accuracy = math.nan
    if len(dataset.test_inputs):
        test_accuracy = accuracy(network, samples_from(dataset.test_inputs, dataset.test_targets))
        logger.info("Test accuracy: %.4f", test_accuracy)
    (run_dir / "metrics_test.json").write_text(json.dumps({"accuracy": test_accuracy}, indent=2))

    checkpoint = network.save_checkpoint(run_dir / "last.ckpt")
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=json.loads(json.dumps(config)),
        dataset_provenance=dataset.provenance,
        layers=network.describe(),
    )
    (run_dir / "config.json").write_text(json.dumps(config, indent=2))

    return RunResult(
        epochs=terminal.epochs_run,
        test_accuracy=test_accuracy,
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
        checkpoint_path=str(checkpoint),
        summary_path=summary_path,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _print_startup_summary(
    *,
    dataset_name: str,
    network: Network,
    optimizer: str,
    params: FitParams,
) -> None:
    print("=== scratchnet run ===")
    print(f"Dataset       : {dataset_name}")
    for entry in network.describe():
        print(f"Layer {entry['index']:<8}: {entry['kind']} {entry['input_shape']} -> {entry['output_shape']}")
    print(f"Optimizer     : {optimizer}")
    print(f"Epochs        : {params.epochs}")
    print(f"Batch size    : {params.batch_size}")
    print(f"Val split     : {params.validation_split}")
    print(f"Parameters    : {network.parameter_count()}")
    print("======================")


__all__ = ["build_layer", "build_network", "load_preset", "presets", "run_pipeline"]
