"""Command line entry point for scratchnet training runs."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable

from scratchnet.data import available_datasets
from scratchnet.training import pipelines


def _format_result(result) -> str:
    payload = {
        "epochs": result.epochs,
        "test_accuracy": result.test_accuracy,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "checkpoint": result.checkpoint_path,
    }
    if getattr(result, "summary_path", ""):
        payload["summary"] = result.summary_path
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="blobs-dense-sgd",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument("--dataset", choices=sorted(available_datasets()), help="Override the dataset")
    parser.add_argument("--epochs", type=int, help="Number of training epochs")
    parser.add_argument("--batch-size", type=int, help="Mini-batch size")
    parser.add_argument("--validation-split", type=float, help="Held-out validation fraction")
    parser.add_argument("--optimizer", choices=["sgd", "momentum", "rmsprop", "adam"])
    parser.add_argument("--lr", type=float, help="Learning rate")
    parser.add_argument("--seed", type=int, help="Seed for weight initialization and shuffling")
    parser.add_argument("--run-dir", type=Path, help="Directory receiving run artifacts")
    parser.add_argument("--init-checkpoint", type=Path, help="Start from saved weights")
    parser.add_argument("--enable-plots", action="store_true", help="Plot the validation curve")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    parser.add_argument("--list-presets", action="store_true", help="List available presets and exit")
    parser.add_argument("--dump-config", type=Path, help="Dump the resolved config to a JSON file")
    return parser.parse_args(argv)


def _load_override(path: Path) -> dict:
    text = path.read_text()
    if path.suffix in {".yml", ".yaml"}:
        import yaml

        return yaml.safe_load(text) or {}
    return json.loads(text)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))
    if args.config:
        override = _load_override(args.config)
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = _merge(config, override)

    if args.dataset:
        config["data"] = {"name": args.dataset, "options": {}}
    train_cfg = config.setdefault("train", {})
    overrides = {
        "epochs": args.epochs,
        "batch_size": args.batch_size,
        "validation_split": args.validation_split,
        "optimizer": args.optimizer,
        "lr": args.lr,
        "seed": args.seed,
        "run_dir": str(args.run_dir) if args.run_dir else None,
        "init_checkpoint": str(args.init_checkpoint) if args.init_checkpoint else None,
    }
    train_cfg.update({key: value for key, value in overrides.items() if value is not None})
    if args.enable_plots:
        train_cfg["enable_plots"] = True

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result))


if __name__ == "__main__":
    main()
