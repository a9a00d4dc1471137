"""Fit-event sinks for experiment tracking."""

from __future__ import annotations

import csv
import json
import logging
import subprocess
from pathlib import Path

from ..core.types import BatchStart, EpochEnd, EpochStart, FitCompleted, FitEvent, FitFailed

logger = logging.getLogger(__name__)


def _git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except Exception:  # pragma: no cover - git may be unavailable in tests
        return "unknown"


def log_fit_event(event: FitEvent) -> None:
    """Write ``event`` to the module logger at a level matching its weight."""

    if isinstance(event, EpochStart):
        logger.info("Epoch %d/%d", event.epoch + 1, event.total_epochs)
    elif isinstance(event, BatchStart):
        logger.debug("batch %d/%d", event.batch + 1, event.total_batches)
    elif isinstance(event, EpochEnd):
        logger.info("val_accuracy: %.4f", event.val_accuracy)
    elif isinstance(event, FitCompleted):
        logger.info(
            "Training %s after %d epochs",
            "cancelled" if event.cancelled else "completed",
            event.epochs_run,
        )
    elif isinstance(event, FitFailed):
        logger.error("Training failed: %s", event.error)


class LoggingSink:
    """Sink forwarding every event to :func:`log_fit_event`."""

    def on_event(self, event: FitEvent) -> None:
        log_fit_event(event)

    __call__ = on_event


class JsonlSink:
    """Append-only JSONL writer for epoch-end and terminal events."""

    def __init__(self, path: str | Path, *, seed: int | None = None, sha: str | None = None) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.seed = seed
        self.sha = sha or _git_sha()

    def on_event(self, event: FitEvent) -> None:
        if isinstance(event, (EpochStart, BatchStart)):
            return
        record = event.to_dict()
        record.update({"seed": self.seed, "sha": self.sha})
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = on_event


class CsvSink:
    """Write per-epoch validation accuracy to CSV with a stable schema."""

    fieldnames = ("epoch", "val_accuracy")

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")

    def on_event(self, event: FitEvent) -> None:
        if not isinstance(event, EpochEnd):
            return
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self.fieldnames)
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow({"epoch": event.epoch, "val_accuracy": float(event.val_accuracy)})

    __call__ = on_event


__all__ = ["CsvSink", "JsonlSink", "LoggingSink", "log_fit_event"]
