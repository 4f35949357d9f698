"""
Bill of Materials module.

Versioned, date-effective product structures with explosion, where-used
and cycle protection.
"""

from mfg_modules.bom.config import BomConfig
from mfg_modules.bom.models import (
    Bom,
    BomComparison,
    BomLine,
    BomStatus,
    BomType,
    ExplodedComponent,
    QuantityChange,
)
from mfg_modules.bom.repository import BomRepository, InMemoryBomRepository, SqlBomRepository
from mfg_modules.bom.service import BomManager

__all__ = [
    "Bom",
    "BomComparison",
    "BomConfig",
    "BomLine",
    "BomManager",
    "BomRepository",
    "BomStatus",
    "BomType",
    "ExplodedComponent",
    "InMemoryBomRepository",
    "QuantityChange",
    "SqlBomRepository",
]
