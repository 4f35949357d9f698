"""
Configuration Loader (``mfg_config.loader``).

Responsibility
--------------
Loads a planning YAML file and parses it into a typed
``mfg_config.schema.PlanningConfig``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the module config
dataclasses only; no manager or service reads YAML itself.

Invariants enforced
-------------------
* Unknown top-level sections and unknown keys inside a section raise
  ``ValueError``; nothing is silently ignored.
* ``compute_checksum`` is deterministic over the parsed YAML document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` from the config ``__post_init__``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from mfg_config.schema import HorizonSettings, PlanningConfig
from mfg_kernel.logging_config import get_logger
from mfg_modules.bom.config import BomConfig
from mfg_modules.capacity.config import CapacityConfig
from mfg_modules.forecasting.config import ForecastConfig
from mfg_modules.mrp.config import MrpConfig

logger = get_logger("config.loader")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "planning.yaml"

_SECTIONS = ("bom", "mrp", "capacity", "forecast", "horizon", "effective_from")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_horizon(data: dict[str, Any]) -> HorizonSettings:
    known = {"days", "bucket_size", "frozen_days", "slushy_days"}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown horizon keys: {sorted(unknown)}")
    return HorizonSettings(**data)


def parse_planning_config(data: dict[str, Any]) -> PlanningConfig:
    """Build a ``PlanningConfig`` from an already-loaded YAML document."""
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    effective_from = data.get("effective_from")
    return PlanningConfig(
        bom=BomConfig.from_dict(data.get("bom") or {}),
        mrp=MrpConfig.from_dict(data.get("mrp") or {}),
        capacity=CapacityConfig.from_dict(data.get("capacity") or {}),
        forecast=ForecastConfig.from_dict(data.get("forecast") or {}),
        horizon=parse_horizon(data.get("horizon") or {}),
        effective_from=parse_date(effective_from) if effective_from is not None else None,
        checksum=compute_checksum(data),
    )


def load_planning_config(path: Path | str | None = None) -> PlanningConfig:
    """Load and parse a planning YAML file; the shipped defaults when ``path`` is None."""
    path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_planning_config(load_yaml_file(path))
    logger.info(
        "planning_config_loaded",
        extra={"path": str(path), "checksum": config.checksum},
    )
    return config


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
