"""
Work center persistence contract and implementations.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from mfg_modules.work_center.models import (
    WorkCenter,
    WorkCenterClosure,
    WorkCenterOvertime,
    WorkCenterType,
)
from mfg_modules.work_center.orm import (
    WorkCenterClosureModel,
    WorkCenterModel,
    WorkCenterOvertimeModel,
)


@runtime_checkable
class WorkCenterRepository(Protocol):
    """Work center master data plus the closure and overtime calendar."""

    def add(self, work_center: WorkCenter) -> WorkCenter:
        ...

    def get(self, work_center_id: UUID) -> WorkCenter | None:
        ...

    def find_by_code(self, code: str) -> WorkCenter | None:
        ...

    def find_by_type(self, work_center_type: WorkCenterType) -> list[WorkCenter]:
        ...

    def find_active(self) -> list[WorkCenter]:
        ...

    def update(self, work_center: WorkCenter) -> WorkCenter:
        ...

    def closures(
        self, work_center_id: UUID, start: date, end: date,
    ) -> list[WorkCenterClosure]:
        """Closures with ``start <= closure_date <= end``."""
        ...

    def add_closure(self, closure: WorkCenterClosure) -> None:
        ...

    def remove_closure(self, work_center_id: UUID, closure_date: date) -> None:
        ...

    def overtime(
        self, work_center_id: UUID, start: date, end: date,
    ) -> list[WorkCenterOvertime]:
        """Overtime entries with ``start <= overtime_date <= end``."""
        ...

    def save_overtime(self, overtime: WorkCenterOvertime) -> None:
        """Insert or replace the entry for that work center and date."""
        ...


class InMemoryWorkCenterRepository:
    def __init__(self) -> None:
        self._work_centers: dict[UUID, WorkCenter] = {}
        self._closures: dict[tuple[UUID, date], WorkCenterClosure] = {}
        self._overtime: dict[tuple[UUID, date], WorkCenterOvertime] = {}

    def add(self, work_center: WorkCenter) -> WorkCenter:
        self._work_centers[work_center.id] = work_center
        return work_center

    def get(self, work_center_id: UUID) -> WorkCenter | None:
        return self._work_centers.get(work_center_id)

    def find_by_code(self, code: str) -> WorkCenter | None:
        for wc in self._work_centers.values():
            if wc.code == code:
                return wc
        return None

    def find_by_type(self, work_center_type: WorkCenterType) -> list[WorkCenter]:
        return [
            wc for wc in self._work_centers.values()
            if wc.work_center_type == work_center_type
        ]

    def find_active(self) -> list[WorkCenter]:
        return [wc for wc in self._work_centers.values() if wc.is_active]

    def update(self, work_center: WorkCenter) -> WorkCenter:
        if work_center.id not in self._work_centers:
            raise KeyError(work_center.id)
        self._work_centers[work_center.id] = work_center
        return work_center

    def closures(
        self, work_center_id: UUID, start: date, end: date,
    ) -> list[WorkCenterClosure]:
        return sorted(
            (
                c for (wc_id, day), c in self._closures.items()
                if wc_id == work_center_id and start <= day <= end
            ),
            key=lambda c: c.closure_date,
        )

    def add_closure(self, closure: WorkCenterClosure) -> None:
        self._closures[(closure.work_center_id, closure.closure_date)] = closure

    def remove_closure(self, work_center_id: UUID, closure_date: date) -> None:
        self._closures.pop((work_center_id, closure_date), None)

    def overtime(
        self, work_center_id: UUID, start: date, end: date,
    ) -> list[WorkCenterOvertime]:
        return sorted(
            (
                o for (wc_id, day), o in self._overtime.items()
                if wc_id == work_center_id and start <= day <= end
            ),
            key=lambda o: o.overtime_date,
        )

    def save_overtime(self, overtime: WorkCenterOvertime) -> None:
        self._overtime[(overtime.work_center_id, overtime.overtime_date)] = overtime


class SqlWorkCenterRepository:
    """SQLAlchemy-backed repository.  The caller owns the transaction."""

    def __init__(self, session: Session):
        self._session = session

    def add(self, work_center: WorkCenter) -> WorkCenter:
        self._session.add(WorkCenterModel.from_dto(work_center))
        self._session.flush()
        return work_center

    def get(self, work_center_id: UUID) -> WorkCenter | None:
        model = self._session.get(WorkCenterModel, work_center_id)
        return model.to_dto() if model is not None else None

    def find_by_code(self, code: str) -> WorkCenter | None:
        model = self._session.scalars(
            select(WorkCenterModel).where(WorkCenterModel.code == code)
        ).first()
        return model.to_dto() if model is not None else None

    def find_by_type(self, work_center_type: WorkCenterType) -> list[WorkCenter]:
        stmt = select(WorkCenterModel).where(
            WorkCenterModel.work_center_type == work_center_type.value
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def find_active(self) -> list[WorkCenter]:
        stmt = select(WorkCenterModel).where(WorkCenterModel.is_active.is_(True))
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def update(self, work_center: WorkCenter) -> WorkCenter:
        model = self._session.get(WorkCenterModel, work_center.id)
        if model is None:
            raise KeyError(work_center.id)
        model.apply_dto(work_center)
        self._session.flush()
        return work_center

    def closures(
        self, work_center_id: UUID, start: date, end: date,
    ) -> list[WorkCenterClosure]:
        stmt = (
            select(WorkCenterClosureModel)
            .where(WorkCenterClosureModel.work_center_id == work_center_id)
            .where(WorkCenterClosureModel.closure_date >= start)
            .where(WorkCenterClosureModel.closure_date <= end)
            .order_by(WorkCenterClosureModel.closure_date)
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def add_closure(self, closure: WorkCenterClosure) -> None:
        self.remove_closure(closure.work_center_id, closure.closure_date)
        self._session.add(WorkCenterClosureModel.from_dto(closure))
        self._session.flush()

    def remove_closure(self, work_center_id: UUID, closure_date: date) -> None:
        self._session.execute(
            delete(WorkCenterClosureModel)
            .where(WorkCenterClosureModel.work_center_id == work_center_id)
            .where(WorkCenterClosureModel.closure_date == closure_date)
        )
        self._session.flush()

    def overtime(
        self, work_center_id: UUID, start: date, end: date,
    ) -> list[WorkCenterOvertime]:
        stmt = (
            select(WorkCenterOvertimeModel)
            .where(WorkCenterOvertimeModel.work_center_id == work_center_id)
            .where(WorkCenterOvertimeModel.overtime_date >= start)
            .where(WorkCenterOvertimeModel.overtime_date <= end)
            .order_by(WorkCenterOvertimeModel.overtime_date)
        )
        return [m.to_dto() for m in self._session.scalars(stmt)]

    def save_overtime(self, overtime: WorkCenterOvertime) -> None:
        self._session.execute(
            delete(WorkCenterOvertimeModel)
            .where(WorkCenterOvertimeModel.work_center_id == overtime.work_center_id)
            .where(WorkCenterOvertimeModel.overtime_date == overtime.overtime_date)
        )
        self._session.add(WorkCenterOvertimeModel.from_dto(overtime))
        self._session.flush()
