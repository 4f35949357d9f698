"""
Bill of Materials Domain Models (``mfg_modules.bom.models``).

Responsibility
--------------
Immutable BOM header/line value objects plus the explosion and comparison
result records.  A BOM is versioned per product and date-effective; only a
draft BOM can have its lines edited.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``BomManager``, the MRP engine and the work order manager.

Invariants enforced
-------------------
* All models are ``frozen=True``; edits go through ``dataclasses.replace``.
* Quantities are ``Decimal``; line quantity > 0; scrap in [0, 100).
* A BOM is "effective" on a date only when released and inside its window.

Failure modes
-------------
* Construction with invalid quantities or windows raises ``ValueError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from mfg_kernel.logging_config import get_logger

logger = get_logger("modules.bom.models")

HUNDRED = Decimal("100")


class BomStatus(str, Enum):
    """Lifecycle of a BOM version."""

    DRAFT = "draft"
    RELEASED = "released"
    OBSOLETE = "obsolete"


class BomType(str, Enum):
    """Purpose of a BOM."""

    MANUFACTURING = "manufacturing"
    ENGINEERING = "engineering"
    PLANNING = "planning"
    PHANTOM = "phantom"


@dataclass(frozen=True)
class BomLine:
    """
    One component of a parent product.

    ``quantity`` is per single parent unit.  ``scrap_percentage`` is the
    share of issued component lost in production, so the quantity to issue
    is ``quantity / (1 - scrap% / 100)``.
    """

    product_id: str
    quantity: Decimal
    uom: str = "EA"
    line_number: int = 0
    scrap_percentage: Decimal = Decimal("0")
    operation_number: int | None = None
    effective_from: date | None = None
    effective_to: date | None = None
    is_phantom: bool = False
    notes: str | None = None

    def __post_init__(self):
        if not self.product_id:
            raise ValueError("BOM line requires a component product id")
        if self.quantity <= 0:
            raise ValueError(f"BOM line quantity must be positive, got {self.quantity}")
        if not (Decimal("0") <= self.scrap_percentage < HUNDRED):
            logger.warning(
                "bom_line_invalid_scrap",
                extra={
                    "product_id": self.product_id,
                    "scrap_percentage": str(self.scrap_percentage),
                },
            )
            raise ValueError(
                f"Scrap percentage must be in [0, 100), got {self.scrap_percentage}"
            )
        if self.line_number < 0:
            raise ValueError("Line number cannot be negative")
        if (
            self.effective_from is not None
            and self.effective_to is not None
            and self.effective_to < self.effective_from
        ):
            raise ValueError("Line effective_to is before effective_from")

    @property
    def quantity_with_scrap(self) -> Decimal:
        return self.quantity / (Decimal("1") - self.scrap_percentage / HUNDRED)

    def is_effective_at(self, as_of: date) -> bool:
        if self.effective_from is not None and as_of < self.effective_from:
            return False
        if self.effective_to is not None and as_of > self.effective_to:
            return False
        return True

    def with_quantity(self, quantity: Decimal) -> BomLine:
        return replace(self, quantity=quantity)

    def with_line_number(self, line_number: int) -> BomLine:
        return replace(self, line_number=line_number)


@dataclass(frozen=True)
class Bom:
    """A versioned product structure."""

    product_id: str
    version: str = "1.0"
    lines: tuple[BomLine, ...] = ()
    status: BomStatus = BomStatus.DRAFT
    bom_type: BomType = BomType.MANUFACTURING
    effective_from: date | None = None
    effective_to: date | None = None
    previous_version_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self):
        if not self.product_id:
            raise ValueError("BOM requires a product id")
        if not self.version:
            raise ValueError("BOM requires a version string")

    @property
    def is_draft(self) -> bool:
        return self.status == BomStatus.DRAFT

    @property
    def component_ids(self) -> tuple[str, ...]:
        return tuple(line.product_id for line in self.lines)

    def is_effective_at(self, as_of: date) -> bool:
        """Released and inside the effectivity window (inclusive)."""
        if self.status != BomStatus.RELEASED:
            return False
        if self.effective_from is not None and as_of < self.effective_from:
            return False
        if self.effective_to is not None and as_of > self.effective_to:
            return False
        return True

    def effective_lines(self, as_of: date) -> tuple[BomLine, ...]:
        return tuple(line for line in self.lines if line.is_effective_at(as_of))

    def line(self, line_number: int) -> BomLine | None:
        for candidate in self.lines:
            if candidate.line_number == line_number:
                return candidate
        return None

    def next_line_number(self, increment: int = 10) -> int:
        highest = max((line.line_number for line in self.lines), default=0)
        return highest + increment


def select_effective(boms: list[Bom], as_of: date) -> Bom | None:
    """Pick the effective BOM: released, window covers ``as_of``, latest start wins."""
    candidates = [b for b in boms if b.is_effective_at(as_of)]
    if not candidates:
        return None
    return max(candidates, key=lambda b: (b.effective_from or date.min, b.version))


@dataclass(frozen=True)
class ExplodedComponent:
    """Flat record emitted by BOM explosion."""

    product_id: str
    quantity: Decimal
    level: int
    uom: str
    parent_product_id: str
    line_number: int
    operation_number: int | None = None


@dataclass(frozen=True)
class QuantityChange:
    product_id: str
    old_quantity: Decimal
    new_quantity: Decimal


@dataclass(frozen=True)
class BomComparison:
    """Differences between two BOM versions, keyed by component product."""

    added: tuple[BomLine, ...] = ()
    removed: tuple[BomLine, ...] = ()
    changed: tuple[QuantityChange, ...] = ()

    @property
    def is_identical(self) -> bool:
        return not (self.added or self.removed or self.changed)
