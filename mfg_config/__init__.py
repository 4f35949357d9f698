"""
mfg_config -- YAML planning configuration.

    from mfg_config import load_planning_config

    config = load_planning_config()            # shipped defaults
    config = load_planning_config("plant.yaml")
    engine = MrpEngine(..., config=config.mrp)
"""

from mfg_config.loader import (
    DEFAULT_CONFIG_PATH,
    compute_checksum,
    load_planning_config,
    load_yaml_file,
    parse_date,
    parse_planning_config,
)
from mfg_config.schema import HorizonSettings, PlanningConfig

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "HorizonSettings",
    "PlanningConfig",
    "compute_checksum",
    "load_planning_config",
    "load_yaml_file",
    "parse_date",
    "parse_planning_config",
]
