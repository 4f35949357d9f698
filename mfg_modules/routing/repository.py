"""
Routing persistence contract and implementations.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mfg_modules.routing.models import Operation, Routing, select_effective
from mfg_modules.routing.orm import OperationModel, RoutingModel


@runtime_checkable
class RoutingRepository(Protocol):
    """Storage of routing versions keyed by id and by owning product."""

    def add(self, routing: Routing) -> Routing:
        ...

    def get(self, routing_id: UUID) -> Routing | None:
        ...

    def find_by_product_id(self, product_id: str, as_of: date) -> Routing | None:
        ...

    def find_all_versions(self, product_id: str) -> list[Routing]:
        ...

    def update(self, routing: Routing) -> Routing:
        ...

    def find_operations_by_work_center(
        self, work_center_id: UUID, as_of: date,
    ) -> list[tuple[Routing, Operation]]:
        """Operations of effective routings that run at ``work_center_id``."""
        ...


class InMemoryRoutingRepository:
    def __init__(self) -> None:
        self._routings: dict[UUID, Routing] = {}

    def add(self, routing: Routing) -> Routing:
        self._routings[routing.id] = routing
        return routing

    def get(self, routing_id: UUID) -> Routing | None:
        return self._routings.get(routing_id)

    def find_by_product_id(self, product_id: str, as_of: date) -> Routing | None:
        return select_effective(self.find_all_versions(product_id), as_of)

    def find_all_versions(self, product_id: str) -> list[Routing]:
        return [r for r in self._routings.values() if r.product_id == product_id]

    def update(self, routing: Routing) -> Routing:
        if routing.id not in self._routings:
            raise KeyError(routing.id)
        self._routings[routing.id] = routing
        return routing

    def find_operations_by_work_center(
        self, work_center_id: UUID, as_of: date,
    ) -> list[tuple[Routing, Operation]]:
        return [
            (routing, op)
            for routing in self._routings.values()
            if routing.is_effective_at(as_of)
            for op in routing.effective_operations(as_of)
            if op.work_center_id == work_center_id
        ]


class SqlRoutingRepository:
    """SQLAlchemy-backed repository.  The caller owns the transaction."""

    def __init__(self, session: Session):
        self._session = session

    def add(self, routing: Routing) -> Routing:
        self._session.add(RoutingModel.from_dto(routing))
        self._session.flush()
        return routing

    def get(self, routing_id: UUID) -> Routing | None:
        model = self._session.get(RoutingModel, routing_id)
        return model.to_dto() if model is not None else None

    def find_by_product_id(self, product_id: str, as_of: date) -> Routing | None:
        return select_effective(self.find_all_versions(product_id), as_of)

    def find_all_versions(self, product_id: str) -> list[Routing]:
        stmt = (
            select(RoutingModel)
            .where(RoutingModel.product_id == product_id)
            .order_by(RoutingModel.created_at, RoutingModel.version)
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def update(self, routing: Routing) -> Routing:
        model = self._session.get(RoutingModel, routing.id)
        if model is None:
            raise KeyError(routing.id)
        model.operations.clear()
        self._session.flush()
        model.apply_dto(routing)
        self._session.flush()
        return routing

    def find_operations_by_work_center(
        self, work_center_id: UUID, as_of: date,
    ) -> list[tuple[Routing, Operation]]:
        stmt = (
            select(RoutingModel)
            .join(OperationModel, OperationModel.routing_id == RoutingModel.id)
            .where(OperationModel.work_center_id == work_center_id)
            .distinct()
        )
        result = []
        for model in self._session.scalars(stmt):
            routing = model.to_dto()
            if not routing.is_effective_at(as_of):
                continue
            result.extend(
                (routing, op)
                for op in routing.effective_operations(as_of)
                if op.work_center_id == work_center_id
            )
        return result
