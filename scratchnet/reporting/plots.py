"""Headless-safe plotting adapters."""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

from ..core.types import EpochEnd, FitEvent


class PlotAdapter:
    """Collect validation accuracy per epoch and optionally plot it."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: List[Tuple[int, float]] = []
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def on_event(self, event: FitEvent) -> None:
        if not self.enable_plots or not isinstance(event, EpochEnd):
            return
        self._history.append((event.epoch, float(event.val_accuracy)))

    def close(self) -> None:
        if not self.enable_plots or not self._history:
            return
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        epochs, accuracies = zip(*self._history)
        fig, ax = plt.subplots()
        ax.plot(epochs, accuracies, marker="o")
        ax.set_xlabel("Epoch")
        ax.set_ylabel("Validation accuracy")
        ax.set_ylim(0.0, 1.0)
        ax.set_title("Training Curve")
        fig.savefig(self.run_dir / "val_accuracy.png")
        plt.close(fig)

    __call__ = on_event
