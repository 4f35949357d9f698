"""
Module: mfg_modules.work_center.orm
Responsibility: SQLAlchemy ORM persistence models for work centers and
    their calendar (``mfg_work_centers``, ``mfg_work_center_closures``,
    ``mfg_work_center_overtime``).

Architecture position: Modules > Work Center > ORM.  Inherits from TrackedBase.

Invariants enforced:
    - code is unique (uq_mfg_work_center_code).
    - One closure row per work center and date (uq_mfg_work_center_closure).
    - One overtime row per work center and date (uq_mfg_work_center_overtime).
    - Hours, efficiency and rates use Decimal (Numeric(28,9)).

Failure modes:
    - IntegrityError on duplicate code or duplicate closure date.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mfg_kernel.db.base import TrackedBase, UUIDString


class WorkCenterModel(TrackedBase):
    """
    ORM model for a work center.

    Maps to: mfg_modules.work_center.models.WorkCenter (frozen dataclass).
    The alternate reference is a self-referential FK.
    """

    __tablename__ = "mfg_work_centers"

    __table_args__ = (
        UniqueConstraint("code", name="uq_mfg_work_center_code"),
        Index("idx_mfg_work_center_type", "work_center_type"),
        Index("idx_mfg_work_center_active", "is_active"),
    )

    code: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(255))
    work_center_type: Mapped[str] = mapped_column(String(50), default="machine")
    hours_per_day: Mapped[Decimal] = mapped_column(default=Decimal("8"))
    days_per_week: Mapped[int] = mapped_column(Integer, default=5)
    efficiency: Mapped[Decimal] = mapped_column(default=Decimal("1"))
    capacity_units: Mapped[int] = mapped_column(Integer, default=1)
    cost_per_hour: Mapped[Decimal | None] = mapped_column(nullable=True)
    labor_cost_per_hour: Mapped[Decimal | None] = mapped_column(nullable=True)
    alternate_work_center_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("mfg_work_centers.id"), nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self):
        """Convert ORM model to frozen WorkCenter DTO."""
        from mfg_modules.work_center.models import WorkCenter, WorkCenterType
        return WorkCenter(
            id=self.id,
            code=self.code,
            name=self.name,
            work_center_type=WorkCenterType(self.work_center_type),
            hours_per_day=self.hours_per_day,
            days_per_week=self.days_per_week,
            efficiency=self.efficiency,
            capacity_units=self.capacity_units,
            cost_per_hour=self.cost_per_hour,
            labor_cost_per_hour=self.labor_cost_per_hour,
            alternate_work_center_id=self.alternate_work_center_id,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto) -> "WorkCenterModel":
        """Create ORM model from frozen WorkCenter DTO."""
        model = cls(id=dto.id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto) -> None:
        self.code = dto.code
        self.name = dto.name
        self.work_center_type = dto.work_center_type.value
        self.hours_per_day = dto.hours_per_day
        self.days_per_week = dto.days_per_week
        self.efficiency = dto.efficiency
        self.capacity_units = dto.capacity_units
        self.cost_per_hour = dto.cost_per_hour
        self.labor_cost_per_hour = dto.labor_cost_per_hour
        self.alternate_work_center_id = dto.alternate_work_center_id
        self.is_active = dto.is_active

    def __repr__(self) -> str:
        return f"<WorkCenterModel {self.code} active={self.is_active}>"


class WorkCenterClosureModel(TrackedBase):
    """ORM model for a closure day.  Maps to: WorkCenterClosure."""

    __tablename__ = "mfg_work_center_closures"

    __table_args__ = (
        UniqueConstraint(
            "work_center_id", "closure_date", name="uq_mfg_work_center_closure",
        ),
        Index("idx_mfg_closure_work_center", "work_center_id"),
    )

    work_center_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("mfg_work_centers.id"),
    )
    closure_date: Mapped[date] = mapped_column(Date)
    reason: Mapped[str] = mapped_column(String(255), default="")

    def to_dto(self):
        from mfg_modules.work_center.models import WorkCenterClosure
        return WorkCenterClosure(
            work_center_id=self.work_center_id,
            closure_date=self.closure_date,
            reason=self.reason,
        )

    @classmethod
    def from_dto(cls, dto) -> "WorkCenterClosureModel":
        return cls(
            work_center_id=dto.work_center_id,
            closure_date=dto.closure_date,
            reason=dto.reason,
        )


class WorkCenterOvertimeModel(TrackedBase):
    """ORM model for scheduled overtime.  Maps to: WorkCenterOvertime."""

    __tablename__ = "mfg_work_center_overtime"

    __table_args__ = (
        UniqueConstraint(
            "work_center_id", "overtime_date", name="uq_mfg_work_center_overtime",
        ),
        Index("idx_mfg_overtime_work_center", "work_center_id"),
    )

    work_center_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("mfg_work_centers.id"),
    )
    overtime_date: Mapped[date] = mapped_column(Date)
    hours: Mapped[Decimal] = mapped_column()
    reason: Mapped[str] = mapped_column(String(255), default="")

    def to_dto(self):
        from mfg_modules.work_center.models import WorkCenterOvertime
        return WorkCenterOvertime(
            work_center_id=self.work_center_id,
            overtime_date=self.overtime_date,
            hours=self.hours,
            reason=self.reason,
        )

    @classmethod
    def from_dto(cls, dto) -> "WorkCenterOvertimeModel":
        return cls(
            work_center_id=dto.work_center_id,
            overtime_date=dto.overtime_date,
            hours=dto.hours,
            reason=dto.reason,
        )
