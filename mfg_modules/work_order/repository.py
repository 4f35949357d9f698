"""
Work order persistence contract and implementations.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mfg_modules.work_order.models import WorkOrder, WorkOrderStatus
from mfg_modules.work_order.orm import WorkOrderLineModel, WorkOrderModel


@runtime_checkable
class WorkOrderRepository(Protocol):
    """Work order storage.  Date ranges are half-open on planned start."""

    def add(self, work_order: WorkOrder) -> WorkOrder:
        ...

    def get(self, work_order_id: UUID) -> WorkOrder | None:
        ...

    def find_by_number(self, number: str) -> WorkOrder | None:
        ...

    def find_by_status(
        self, status: WorkOrderStatus, product_id: str | None = None,
    ) -> list[WorkOrder]:
        ...

    def find_by_date_range(
        self, start: date, end: date, status: WorkOrderStatus | None = None,
    ) -> list[WorkOrder]:
        ...

    def find_by_work_center_and_date_range(
        self,
        work_center_id: UUID,
        start: date,
        end: date,
        statuses: Iterable[WorkOrderStatus],
    ) -> list[WorkOrder]:
        """Orders in ``statuses`` with an operation line at the work center."""
        ...

    def update(self, work_order: WorkOrder) -> WorkOrder:
        ...


class InMemoryWorkOrderRepository:
    def __init__(self) -> None:
        self._orders: dict[UUID, WorkOrder] = {}

    def add(self, work_order: WorkOrder) -> WorkOrder:
        self._orders[work_order.id] = work_order
        return work_order

    def get(self, work_order_id: UUID) -> WorkOrder | None:
        return self._orders.get(work_order_id)

    def find_by_number(self, number: str) -> WorkOrder | None:
        for order in self._orders.values():
            if order.number == number:
                return order
        return None

    def find_by_status(
        self, status: WorkOrderStatus, product_id: str | None = None,
    ) -> list[WorkOrder]:
        return [
            o for o in self._orders.values()
            if o.status == status and (product_id is None or o.product_id == product_id)
        ]

    def find_by_date_range(
        self, start: date, end: date, status: WorkOrderStatus | None = None,
    ) -> list[WorkOrder]:
        return [
            o for o in self._orders.values()
            if start <= o.planned_start_date < end
            and (status is None or o.status == status)
        ]

    def find_by_work_center_and_date_range(
        self,
        work_center_id: UUID,
        start: date,
        end: date,
        statuses: Iterable[WorkOrderStatus],
    ) -> list[WorkOrder]:
        wanted = set(statuses)
        return [
            o for o in self._orders.values()
            if o.status in wanted
            and start <= o.planned_start_date < end
            and any(line.work_center_id == work_center_id for line in o.operation_lines)
        ]

    def update(self, work_order: WorkOrder) -> WorkOrder:
        if work_order.id not in self._orders:
            raise KeyError(work_order.id)
        self._orders[work_order.id] = work_order
        return work_order


class SqlWorkOrderRepository:
    """SQLAlchemy-backed repository.  The caller owns the transaction."""

    def __init__(self, session: Session):
        self._session = session

    def add(self, work_order: WorkOrder) -> WorkOrder:
        self._session.add(WorkOrderModel.from_dto(work_order))
        self._session.flush()
        return work_order

    def get(self, work_order_id: UUID) -> WorkOrder | None:
        model = self._session.get(WorkOrderModel, work_order_id)
        return model.to_dto() if model is not None else None

    def find_by_number(self, number: str) -> WorkOrder | None:
        model = self._session.scalars(
            select(WorkOrderModel).where(WorkOrderModel.number == number)
        ).first()
        return model.to_dto() if model is not None else None

    def find_by_status(
        self, status: WorkOrderStatus, product_id: str | None = None,
    ) -> list[WorkOrder]:
        stmt = select(WorkOrderModel).where(WorkOrderModel.status == status.value)
        if product_id is not None:
            stmt = stmt.where(WorkOrderModel.product_id == product_id)
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def find_by_date_range(
        self, start: date, end: date, status: WorkOrderStatus | None = None,
    ) -> list[WorkOrder]:
        stmt = (
            select(WorkOrderModel)
            .where(WorkOrderModel.planned_start_date >= start)
            .where(WorkOrderModel.planned_start_date < end)
        )
        if status is not None:
            stmt = stmt.where(WorkOrderModel.status == status.value)
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def find_by_work_center_and_date_range(
        self,
        work_center_id: UUID,
        start: date,
        end: date,
        statuses: Iterable[WorkOrderStatus],
    ) -> list[WorkOrder]:
        stmt = (
            select(WorkOrderModel)
            .join(WorkOrderLineModel, WorkOrderLineModel.work_order_id == WorkOrderModel.id)
            .where(WorkOrderLineModel.work_center_id == work_center_id)
            .where(WorkOrderModel.status.in_([s.value for s in statuses]))
            .where(WorkOrderModel.planned_start_date >= start)
            .where(WorkOrderModel.planned_start_date < end)
            .distinct()
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def update(self, work_order: WorkOrder) -> WorkOrder:
        model = self._session.get(WorkOrderModel, work_order.id)
        if model is None:
            raise KeyError(work_order.id)
        model.lines.clear()
        self._session.flush()
        model.apply_dto(work_order)
        self._session.flush()
        return work_order
