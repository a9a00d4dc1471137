"""Experiment artifact helpers."""

from __future__ import annotations

import json
import platform
import time
from pathlib import Path
from typing import Mapping, Sequence

import numpy as np

from .sinks import _git_sha


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    dataset_provenance: Mapping[str, object],
    layers: Sequence[Mapping[str, object]] = (),
) -> str:
    """Write a manifest JSON file capturing reproducibility metadata."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest = {
        "git_sha": _git_sha(),
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "config": config,
        "dataset": dict(dataset_provenance),
        "layers": [dict(layer) for layer in layers],
        "environment": {
            "python": platform.python_version(),
            "numpy": np.__version__,
        },
    }
    path.write_text(json.dumps(manifest, indent=2, default=str))
    return str(path)
