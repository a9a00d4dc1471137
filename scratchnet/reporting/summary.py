"""Deterministic run summarisation helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping, Sequence

import numpy as np


def _area(y: np.ndarray, x: np.ndarray) -> float:
    trapezoid = getattr(np, "trapezoid", None)
    if callable(trapezoid):
        return float(trapezoid(y, x))
    return float(np.trapz(y, x))


def compute_auc(points: Sequence[float]) -> float:
    """Return the area-under-curve of ``points`` along an implicit epoch axis."""

    if not points:
        return 0.0
    y = np.asarray(points, dtype=np.float64)
    x = np.arange(len(points), dtype=np.float64)
    return _area(y, x)


def _build_summary(records: list[Mapping[str, object]]) -> Mapping[str, object]:
    epochs = [r for r in records if r.get("type") == "epoch_end"]
    terminal = next((r for r in reversed(records) if r.get("type") in {"completed", "failed"}), None)
    values = [float(r["val_accuracy"]) for r in epochs]
    summary: dict[str, object] = {
        "version": 1,
        "epochs": len(epochs),
        "status": terminal.get("type") if terminal else "unknown",
    }
    if values:
        arr = np.asarray(values, dtype=np.float64)
        summary["val_accuracy"] = {
            "min": float(np.min(arr)),
            "max": float(np.max(arr)),
            "mean": float(np.mean(arr)),
            "last": float(arr[-1]),
            "best_epoch": int(np.argmax(arr)),
            "auc": compute_auc(values),
        }
    return summary


def write_summary(metrics_jsonl: str | Path, out_summary_json: str | Path) -> str:
    """Write a deterministic summary of the events in ``metrics_jsonl``."""

    metrics_path = Path(metrics_jsonl)
    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    records: list[Mapping[str, object]] = []
    if metrics_path.exists():
        for line in metrics_path.read_text().splitlines():
            line = line.strip()
            if line:
                records.append(json.loads(line))

    out_path.write_text(json.dumps(_build_summary(records), sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["compute_auc", "write_summary"]
