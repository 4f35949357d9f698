"""
BOM Configuration Schema.

Defines the structure and defaults for Bill of Materials settings.
"""

from dataclasses import dataclass, fields
from typing import Self

from mfg_kernel.logging_config import get_logger

logger = get_logger("modules.bom.config")


@dataclass
class BomConfig:
    """
    Configuration schema for the BOM module.

    Override at instantiation with plant-specific values:

        config = BomConfig(max_explosion_depth=25)
    """

    # Recursion cap for explode(); malformed data stops here
    max_explosion_depth: int = 99

    # Spacing used when a line is added without an explicit line number
    line_number_increment: int = 10

    # Default unit of measure for new lines
    default_uom: str = "EA"

    def __post_init__(self):
        if self.max_explosion_depth < 1:
            raise ValueError("max_explosion_depth must be at least 1")
        if self.line_number_increment < 1:
            raise ValueError("line_number_increment must be at least 1")
        logger.info(
            "bom_config_initialized",
            extra={
                "max_explosion_depth": self.max_explosion_depth,
                "line_number_increment": self.line_number_increment,
                "default_uom": self.default_uom,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("bom_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from YAML)."""
        logger.info(
            "bom_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown BOM config keys: {sorted(unknown)}")
        return cls(**data)
