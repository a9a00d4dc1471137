"""Training orchestration."""

from .metrics import accuracy, compute_metrics
from .network import Network, samples_from
from .stream import FitStream

__all__ = ["Network", "FitStream", "accuracy", "compute_metrics", "samples_from"]
