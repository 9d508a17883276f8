"""Helpers for seeding and for the artefacts written by a pipeline run.

A run writes into its own time-stamped directory: feature tables, a
``metrics.json`` summary and the configuration that produced them.
"""

import json
import math
import os
import random
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import numpy as np
import yaml


def set_all_seeds(seed: int) -> None:
    """Seed Python and NumPy so splits and solvers are repeatable."""
    random.seed(seed)
    np.random.seed(seed)


def time_stamp() -> str:
    """Return a UTC ``YYYYMMDD-HHMMSS`` stamp for naming run directories."""
    return datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")


def create_run_dir(artifacts_dir: str) -> str:
    """Create and return a fresh run directory under ``artifacts_dir``.

    Runs started within the same second get ``-1``, ``-2``... suffixes instead
    of sharing a directory.
    """
    base = os.path.join(artifacts_dir, time_stamp())
    path, suffix = base, 0
    while os.path.exists(path):
        suffix += 1
        path = f"{base}-{suffix}"
    os.makedirs(path)
    return path


def _json_safe(obj: Any) -> Any:
    if isinstance(obj, Mapping):
        return {str(k): _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(v) for v in obj]
    if isinstance(obj, np.generic):
        obj = obj.item()
    if isinstance(obj, float) and not math.isfinite(obj):
        # Unreachable shortest paths and degenerate scores
        return str(obj)
    return obj


def write_json(path: str, obj: Mapping[str, Any]) -> None:
    """Write ``obj`` as sorted, indented JSON.

    NumPy scalars become plain numbers and non-finite floats become the strings
    ``"inf"``, ``"-inf"`` or ``"nan"`` so the file stays strict JSON.
    """
    with open(path, "w", encoding="utf-8") as f:
        json.dump(_json_safe(obj), f, indent=2, sort_keys=True, allow_nan=False)


def save_config(path: str, cfg: Mapping[str, Any], text: Optional[str] = None) -> None:
    """Persist the configuration used by a run.

    The original file text is written when available so comments survive;
    otherwise the mapping is dumped as YAML without its private ``_`` keys.
    """
    if not text:
        text = yaml.safe_dump(
            {k: v for k, v in cfg.items() if not str(k).startswith("_")}, sort_keys=False
        )
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
