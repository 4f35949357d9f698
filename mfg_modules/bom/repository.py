"""
BOM persistence contract and implementations.

``BomRepository`` is the collaborator contract the manager is written
against.  ``InMemoryBomRepository`` serves tests and embedding callers;
``SqlBomRepository`` persists through the ORM in ``bom.orm``.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mfg_kernel.logging_config import get_logger
from mfg_modules.bom.models import Bom, BomStatus, select_effective
from mfg_modules.bom.orm import BomLineModel, BomModel

logger = get_logger("modules.bom.repository")


@runtime_checkable
class BomRepository(Protocol):
    """Storage of BOM versions keyed by id and by owning product."""

    def add(self, bom: Bom) -> Bom:
        ...

    def get(self, bom_id: UUID) -> Bom | None:
        ...

    def find_by_product_id(self, product_id: str, as_of: date) -> Bom | None:
        """The effective BOM of the product on ``as_of``, if any."""
        ...

    def find_all_versions(self, product_id: str) -> list[Bom]:
        ...

    def update(self, bom: Bom) -> Bom:
        ...

    def find_where_used(self, component_id: str) -> list[Bom]:
        """Every non-obsolete BOM with a line referencing ``component_id``."""
        ...


class InMemoryBomRepository:
    """Dict-backed repository; preserves insertion order of versions."""

    def __init__(self) -> None:
        self._boms: dict[UUID, Bom] = {}

    def add(self, bom: Bom) -> Bom:
        self._boms[bom.id] = bom
        return bom

    def get(self, bom_id: UUID) -> Bom | None:
        return self._boms.get(bom_id)

    def find_by_product_id(self, product_id: str, as_of: date) -> Bom | None:
        return select_effective(self.find_all_versions(product_id), as_of)

    def find_all_versions(self, product_id: str) -> list[Bom]:
        return [b for b in self._boms.values() if b.product_id == product_id]

    def update(self, bom: Bom) -> Bom:
        if bom.id not in self._boms:
            raise KeyError(bom.id)
        self._boms[bom.id] = bom
        return bom

    def find_where_used(self, component_id: str) -> list[Bom]:
        return [
            b for b in self._boms.values()
            if b.status != BomStatus.OBSOLETE and component_id in b.component_ids
        ]


class SqlBomRepository:
    """SQLAlchemy-backed repository.  The caller owns the transaction."""

    def __init__(self, session: Session):
        self._session = session

    def add(self, bom: Bom) -> Bom:
        self._session.add(BomModel.from_dto(bom))
        self._session.flush()
        logger.debug("bom_persisted", extra={"bom_id": str(bom.id)})
        return bom

    def get(self, bom_id: UUID) -> Bom | None:
        model = self._session.get(BomModel, bom_id)
        return model.to_dto() if model is not None else None

    def find_by_product_id(self, product_id: str, as_of: date) -> Bom | None:
        return select_effective(self.find_all_versions(product_id), as_of)

    def find_all_versions(self, product_id: str) -> list[Bom]:
        stmt = (
            select(BomModel)
            .where(BomModel.product_id == product_id)
            .order_by(BomModel.created_at, BomModel.version)
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def update(self, bom: Bom) -> Bom:
        model = self._session.get(BomModel, bom.id)
        if model is None:
            raise KeyError(bom.id)
        # Old lines must be gone before re-inserting the same line numbers
        model.lines.clear()
        self._session.flush()
        model.apply_dto(bom)
        self._session.flush()
        return bom

    def find_where_used(self, component_id: str) -> list[Bom]:
        stmt = (
            select(BomModel)
            .join(BomLineModel, BomLineModel.bom_id == BomModel.id)
            .where(BomLineModel.product_id == component_id)
            .where(BomModel.status != BomStatus.OBSOLETE.value)
            .distinct()
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]
