"""
BOM Manager (``mfg_modules.bom.service``).

Responsibility
--------------
Lifecycle, versioning, line maintenance, explosion and structural
validation of Bills of Materials.

Architecture position
---------------------
**Modules layer** -- ``BomManager`` is the sole public entry point for BOM
operations.  It is written against the ``BomRepository`` contract and is
consumed by the MRP engine (explosion, order-type decisions, where-used
pegging) and the work order manager (material line generation).

Invariants enforced
-------------------
* Only draft BOMs accept line edits; released and obsolete BOMs raise
  ``NotModifiableError``.
* Version strings are unique per product (``VersionExistsError``).
* A BOM with no lines cannot be released (``ReleaseRejectedError``).
* Releasing a version closes the window of any overlapping released
  version of the same product, so at most one BOM is effective per product
  per date.
* Cycles are rejected twice: proactively before a line is accepted
  (walking every non-obsolete BOM of the candidate component, drafts
  included) and again at explosion time through a visited-path check.

Failure modes
-------------
* ``BomNotFoundError`` for unknown ids or products without an effective BOM.
* ``CircularDependencyError`` carrying the full product path.
* ``ValueError`` for duplicate or missing line numbers.

Usage::

    manager = BomManager(InMemoryBomRepository(), clock)
    bom = manager.create("BIKE", lines=[BomLine("WHEEL", Decimal("2"))])
    manager.release(bom.id, effective_from=date(2024, 1, 1))
    components = manager.explode(bom.id, Decimal("10"))
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.exceptions import (
    BomNotFoundError,
    CircularDependencyError,
    NotModifiableError,
    ReleaseRejectedError,
    VersionExistsError,
)
from mfg_kernel.logging_config import get_logger
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
from mfg_modules.bom.repository import BomRepository

logger = get_logger("modules.bom.service")


class BomManager:
    """
    Manages Bill of Materials versions and their explosion.

    Contract
    --------
    * Mutating methods return the new immutable ``Bom`` value after it has
      been written to the repository.
    * ``validate`` never raises; it returns every problem it finds.

    Guarantees
    ----------
    * No cycle can be introduced through ``create``, ``add_line`` or
      ``update_line``.
    * Explosion output preserves parent-before-children ordering.

    Non-goals
    ---------
    * Does NOT coordinate concurrent writers (repository concern).
    * Does NOT run change-order approval workflows.
    """

    def __init__(
        self,
        repository: BomRepository,
        clock: Clock | None = None,
        config: BomConfig | None = None,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._config = config or BomConfig()

    # =========================================================================
    # Lookup
    # =========================================================================

    def find_by_id(self, bom_id: UUID) -> Bom:
        bom = self._repository.get(bom_id)
        if bom is None:
            raise BomNotFoundError(bom_id=str(bom_id))
        return bom

    def find_by_product_id(self, product_id: str, as_of: date | None = None) -> Bom:
        """The effective BOM for ``product_id``; raises when there is none."""
        as_of = as_of or self._clock.today()
        bom = self._repository.find_by_product_id(product_id, as_of)
        if bom is None:
            raise BomNotFoundError(product_id=product_id, as_of=as_of.isoformat())
        return bom

    def get_effective(self, product_id: str, as_of: date | None = None) -> Bom | None:
        """The effective BOM for ``product_id``, or None for purchased items."""
        return self._repository.find_by_product_id(product_id, as_of or self._clock.today())

    def has_effective_bom(self, product_id: str, as_of: date | None = None) -> bool:
        return self.get_effective(product_id, as_of) is not None

    def find_all_versions(self, product_id: str) -> list[Bom]:
        return self._repository.find_all_versions(product_id)

    def where_used(self, component_id: str, as_of: date | None = None) -> list[Bom]:
        """
        Parent BOMs that consume ``component_id``.

        Without ``as_of`` every non-obsolete BOM is returned; with it only
        those effective on that date.
        """
        parents = self._repository.find_where_used(component_id)
        if as_of is not None:
            parents = [b for b in parents if b.is_effective_at(as_of)]
        return parents

    def effective_lines(self, bom_id: UUID, as_of: date | None = None) -> tuple[BomLine, ...]:
        bom = self.find_by_id(bom_id)
        return bom.effective_lines(as_of or self._clock.today())

    # =========================================================================
    # Lifecycle and versioning
    # =========================================================================

    def create(
        self,
        product_id: str,
        lines: Iterable[BomLine] = (),
        version: str = "1.0",
        bom_type: BomType = BomType.MANUFACTURING,
        effective_from: date | None = None,
        effective_to: date | None = None,
    ) -> Bom:
        """Create a draft BOM; every initial line passes the cycle check."""
        self._ensure_version_free(product_id, version)
        numbered = self._number_lines(list(lines))
        for line in numbered:
            self._check_no_cycle(product_id, line.product_id)

        bom = Bom(
            product_id=product_id,
            version=version,
            lines=tuple(numbered),
            bom_type=bom_type,
            effective_from=effective_from,
            effective_to=effective_to,
        )
        self._repository.add(bom)
        logger.info(
            "bom_created",
            extra={
                "bom_id": str(bom.id),
                "product_id": product_id,
                "version": version,
                "line_count": len(bom.lines),
            },
        )
        return bom

    def create_version(
        self,
        bom_id: UUID,
        new_version: str,
        effective_from: date | None = None,
    ) -> Bom:
        """Clone ``bom_id`` into a new draft linked to its predecessor."""
        source = self.find_by_id(bom_id)
        self._ensure_version_free(source.product_id, new_version)

        bom = Bom(
            product_id=source.product_id,
            version=new_version,
            lines=source.lines,
            bom_type=source.bom_type,
            effective_from=effective_from,
            previous_version_id=source.id,
        )
        self._repository.add(bom)
        logger.info(
            "bom_version_created",
            extra={
                "bom_id": str(bom.id),
                "product_id": bom.product_id,
                "version": new_version,
                "previous_version_id": str(source.id),
            },
        )
        return bom

    def release(self, bom_id: UUID, effective_from: date | None = None) -> Bom:
        """
        Release a draft BOM.

        Overlapping released versions of the same product are closed the
        day before the new start, or obsoleted when they start on or after
        it.
        """
        bom = self.find_by_id(bom_id)
        if not bom.is_draft:
            raise NotModifiableError("BOM", str(bom_id), bom.status.value)
        if not bom.lines:
            logger.warning("bom_release_rejected", extra={"bom_id": str(bom_id)})
            raise ReleaseRejectedError("BOM", str(bom_id), "BOM has no lines")

        start = effective_from or bom.effective_from or self._clock.today()
        released = replace(bom, status=BomStatus.RELEASED, effective_from=start)
        if released.effective_to is not None and released.effective_to < start:
            raise ValueError("BOM effective_to is before effective_from")

        for other in self._repository.find_all_versions(bom.product_id):
            if other.id == bom.id or other.status != BomStatus.RELEASED:
                continue
            if other.effective_to is not None and other.effective_to < start:
                continue
            if (
                released.effective_to is not None
                and other.effective_from is not None
                and other.effective_from > released.effective_to
            ):
                continue
            if other.effective_from is not None and other.effective_from >= start:
                superseded = replace(other, status=BomStatus.OBSOLETE)
            else:
                superseded = replace(other, effective_to=start - timedelta(days=1))
            self._repository.update(superseded)
            logger.info(
                "bom_superseded",
                extra={
                    "bom_id": str(other.id),
                    "superseded_by": str(bom.id),
                    "status": superseded.status.value,
                },
            )

        self._repository.update(released)
        logger.info(
            "bom_released",
            extra={
                "bom_id": str(bom.id),
                "product_id": bom.product_id,
                "version": bom.version,
                "effective_from": start.isoformat(),
            },
        )
        return released

    def obsolete(self, bom_id: UUID, effective_to: date | None = None) -> Bom:
        bom = self.find_by_id(bom_id)
        if bom.status == BomStatus.OBSOLETE:
            raise NotModifiableError("BOM", str(bom_id), bom.status.value)
        result = replace(
            bom,
            status=BomStatus.OBSOLETE,
            effective_to=effective_to or bom.effective_to,
        )
        self._repository.update(result)
        logger.info("bom_obsoleted", extra={"bom_id": str(bom_id)})
        return result

    # =========================================================================
    # Line maintenance (drafts only)
    # =========================================================================

    def add_line(self, bom_id: UUID, line: BomLine) -> Bom:
        bom = self._get_draft(bom_id)
        if line.line_number == 0:
            line = line.with_line_number(
                bom.next_line_number(self._config.line_number_increment)
            )
        elif bom.line(line.line_number) is not None:
            raise ValueError(
                f"Line number {line.line_number} already exists in BOM {bom_id}"
            )
        self._check_no_cycle(bom.product_id, line.product_id)

        result = replace(bom, lines=bom.lines + (line,))
        self._repository.update(result)
        logger.info(
            "bom_line_added",
            extra={
                "bom_id": str(bom_id),
                "line_number": line.line_number,
                "component_id": line.product_id,
                "quantity": str(line.quantity),
            },
        )
        return result

    def update_line(self, bom_id: UUID, line: BomLine) -> Bom:
        """Replace the line carrying ``line.line_number``."""
        bom = self._get_draft(bom_id)
        existing = bom.line(line.line_number)
        if existing is None:
            raise ValueError(
                f"Line number {line.line_number} not found in BOM {bom_id}"
            )
        if existing.product_id != line.product_id:
            self._check_no_cycle(bom.product_id, line.product_id)

        result = replace(
            bom,
            lines=tuple(line if old.line_number == line.line_number else old for old in bom.lines),
        )
        self._repository.update(result)
        logger.info(
            "bom_line_updated",
            extra={
                "bom_id": str(bom_id),
                "line_number": line.line_number,
                "component_id": line.product_id,
            },
        )
        return result

    def remove_line(self, bom_id: UUID, line_number: int) -> Bom:
        bom = self._get_draft(bom_id)
        if bom.line(line_number) is None:
            raise ValueError(f"Line number {line_number} not found in BOM {bom_id}")
        result = replace(
            bom,
            lines=tuple(old for old in bom.lines if old.line_number != line_number),
        )
        self._repository.update(result)
        logger.info(
            "bom_line_removed",
            extra={"bom_id": str(bom_id), "line_number": line_number},
        )
        return result

    # =========================================================================
    # Explosion
    # =========================================================================

    def explode(
        self,
        bom_id: UUID,
        quantity: Decimal = Decimal("1"),
        as_of: date | None = None,
        max_depth: int | None = None,
    ) -> list[ExplodedComponent]:
        """
        Flatten a BOM into per-component requirements.

        Each line yields ``quantity_with_scrap * parent quantity`` at
        ``level`` 1 for direct components; components with an effective
        BOM of their own are expanded beneath their line, one level
        deeper, until ``max_depth`` levels have been emitted.
        """
        bom = self.find_by_id(bom_id)
        as_of = as_of or self._clock.today()
        depth = max_depth if max_depth is not None else self._config.max_explosion_depth

        result: list[ExplodedComponent] = []
        self._explode_into(bom, quantity, as_of, 0, depth, (), result)
        logger.debug(
            "bom_exploded",
            extra={
                "bom_id": str(bom_id),
                "quantity": str(quantity),
                "component_records": len(result),
            },
        )
        return result

    def _explode_into(
        self,
        bom: Bom,
        quantity: Decimal,
        as_of: date,
        level: int,
        max_depth: int,
        path: tuple[str, ...],
        out: list[ExplodedComponent],
    ) -> None:
        if bom.product_id in path:
            cycle = path + (bom.product_id,)
            logger.error("bom_cycle_detected", extra={"path": list(cycle)})
            raise CircularDependencyError(cycle)
        path = path + (bom.product_id,)

        for line in bom.effective_lines(as_of):
            required = line.quantity_with_scrap * quantity
            out.append(
                ExplodedComponent(
                    product_id=line.product_id,
                    quantity=required,
                    level=level + 1,
                    uom=line.uom,
                    parent_product_id=bom.product_id,
                    line_number=line.line_number,
                    operation_number=line.operation_number,
                )
            )
            if level + 1 >= max_depth:
                continue
            child = self._repository.find_by_product_id(line.product_id, as_of)
            if child is not None:
                self._explode_into(child, required, as_of, level + 1, max_depth, path, out)

    # =========================================================================
    # Validation and comparison
    # =========================================================================

    def validate(self, bom_id: UUID) -> list[str]:
        """Every structural problem of the BOM, as human-readable strings."""
        bom = self.find_by_id(bom_id)
        problems: list[str] = []

        if not bom.lines:
            problems.append("BOM has no lines")

        seen: set[int] = set()
        for line in bom.lines:
            if line.line_number in seen:
                problems.append(f"Duplicate line number {line.line_number}")
            seen.add(line.line_number)
            if line.quantity <= 0:
                problems.append(
                    f"Line {line.line_number} has non-positive quantity {line.quantity}"
                )
            if line.product_id == bom.product_id:
                problems.append(
                    f"Line {line.line_number} references the parent product {bom.product_id}"
                )

        try:
            self._explode_into(
                bom, Decimal("1"), self._clock.today(), 0,
                self._config.max_explosion_depth, (), [],
            )
        except CircularDependencyError as exc:
            problems.append(str(exc))

        if problems:
            logger.info(
                "bom_validation_failed",
                extra={"bom_id": str(bom_id), "problem_count": len(problems)},
            )
        return problems

    def compare(self, bom_id_a: UUID, bom_id_b: UUID) -> BomComparison:
        """Differences from ``bom_id_a`` to ``bom_id_b`` by component product."""
        lines_a = {line.product_id: line for line in self.find_by_id(bom_id_a).lines}
        lines_b = {line.product_id: line for line in self.find_by_id(bom_id_b).lines}

        added = tuple(line for pid, line in lines_b.items() if pid not in lines_a)
        removed = tuple(line for pid, line in lines_a.items() if pid not in lines_b)
        changed = tuple(
            QuantityChange(pid, lines_a[pid].quantity, lines_b[pid].quantity)
            for pid in lines_a
            if pid in lines_b and lines_a[pid].quantity != lines_b[pid].quantity
        )
        return BomComparison(added=added, removed=removed, changed=changed)

    # =========================================================================
    # Internals
    # =========================================================================

    def _get_draft(self, bom_id: UUID) -> Bom:
        bom = self.find_by_id(bom_id)
        if not bom.is_draft:
            logger.warning(
                "bom_modification_rejected",
                extra={"bom_id": str(bom_id), "status": bom.status.value},
            )
            raise NotModifiableError("BOM", str(bom_id), bom.status.value)
        return bom

    def _ensure_version_free(self, product_id: str, version: str) -> None:
        for existing in self._repository.find_all_versions(product_id):
            if existing.version == version:
                raise VersionExistsError("BOM", product_id, version)

    def _number_lines(self, lines: list[BomLine]) -> list[BomLine]:
        step = self._config.line_number_increment
        numbered: list[BomLine] = []
        used: set[int] = set()
        highest = 0
        for line in lines:
            if line.line_number == 0:
                highest += step
                while highest in used:
                    highest += step
                line = line.with_line_number(highest)
            elif line.line_number in used:
                raise ValueError(f"Duplicate line number {line.line_number}")
            used.add(line.line_number)
            highest = max(highest, line.line_number)
            numbered.append(line)
        return numbered

    def _check_no_cycle(self, parent_product_id: str, component_id: str) -> None:
        """Reject ``component_id`` if its structure reaches ``parent_product_id``."""
        if component_id == parent_product_id:
            raise CircularDependencyError((parent_product_id, component_id))

        visited: set[str] = set()

        def walk(product_id: str, path: tuple[str, ...]) -> None:
            if product_id in visited:
                return
            visited.add(product_id)
            for bom in self._repository.find_all_versions(product_id):
                if bom.status == BomStatus.OBSOLETE:
                    continue
                for line in bom.lines:
                    if line.product_id == parent_product_id:
                        cycle = path + (line.product_id,)
                        logger.warning(
                            "bom_cycle_rejected",
                            extra={"path": list(cycle)},
                        )
                        raise CircularDependencyError(cycle)
                    walk(line.product_id, path + (line.product_id,))

        walk(component_id, (parent_product_id, component_id))
