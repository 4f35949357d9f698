"""
Module: mfg_modules.work_order.orm
Responsibility: SQLAlchemy ORM persistence models for work orders and their
    material/operation lines (``mfg_work_orders`` / ``mfg_work_order_lines``).

Architecture position: Modules > Work Order > ORM.  Inherits from TrackedBase.
    Work center ids on operation lines are UUID columns without a foreign
    key; product ids are plain strings.

Invariants enforced:
    - number is unique (uq_mfg_work_order_number).
    - (work_order_id, line_number) is unique (uq_mfg_work_order_line).
    - Quantities and hours use Decimal (Numeric(28,9)).
    - Enum fields stored as String(50).

Failure modes:
    - IntegrityError on duplicate number or duplicate line number.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mfg_kernel.db.base import TrackedBase, UUIDString


# =============================================================================
# WorkOrderModel
# =============================================================================

class WorkOrderModel(TrackedBase):
    """
    ORM model for production work orders.

    Maps to: mfg_modules.work_order.models.WorkOrder (frozen dataclass).

    Guarantees:
        - number is globally unique.
        - Parent-child hierarchy via parent_work_order_id self-referential FK.
    """

    __tablename__ = "mfg_work_orders"

    __table_args__ = (
        UniqueConstraint("number", name="uq_mfg_work_order_number"),
        Index("idx_mfg_wo_product", "product_id"),
        Index("idx_mfg_wo_status", "status"),
        Index("idx_mfg_wo_planned_start", "planned_start_date"),
    )

    number: Mapped[str] = mapped_column(String(100))
    product_id: Mapped[str] = mapped_column(String(100))
    quantity: Mapped[Decimal] = mapped_column()
    completed_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    scrap_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    planned_start_date: Mapped[date] = mapped_column(Date)
    planned_end_date: Mapped[date] = mapped_column(Date)
    actual_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="planned")
    previous_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    hold_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    parent_work_order_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("mfg_work_orders.id"), nullable=True,
    )
    sales_order_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    source_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    lines: Mapped[list["WorkOrderLineModel"]] = relationship(
        back_populates="work_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="WorkOrderLineModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen WorkOrder DTO."""
        from mfg_modules.work_order.models import WorkOrder, WorkOrderStatus
        return WorkOrder(
            id=self.id,
            number=self.number,
            product_id=self.product_id,
            quantity=self.quantity,
            planned_start_date=self.planned_start_date,
            planned_end_date=self.planned_end_date,
            status=WorkOrderStatus(self.status),
            lines=tuple(line.to_dto() for line in self.lines),
            completed_quantity=self.completed_quantity,
            scrap_quantity=self.scrap_quantity,
            actual_start_date=self.actual_start_date,
            actual_end_date=self.actual_end_date,
            parent_work_order_id=self.parent_work_order_id,
            sales_order_id=self.sales_order_id,
            source_reference=self.source_reference,
            hold_reason=self.hold_reason,
            previous_status=(
                WorkOrderStatus(self.previous_status) if self.previous_status else None
            ),
            cancellation_reason=self.cancellation_reason,
            released_at=self.released_at,
            closed_at=self.closed_at,
        )

    @classmethod
    def from_dto(cls, dto) -> "WorkOrderModel":
        """Create ORM model (with line children) from frozen WorkOrder DTO."""
        model = cls(id=dto.id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto) -> None:
        """Overwrite every column and replace all lines from ``dto``."""
        self.number = dto.number
        self.product_id = dto.product_id
        self.quantity = dto.quantity
        self.completed_quantity = dto.completed_quantity
        self.scrap_quantity = dto.scrap_quantity
        self.planned_start_date = dto.planned_start_date
        self.planned_end_date = dto.planned_end_date
        self.actual_start_date = dto.actual_start_date
        self.actual_end_date = dto.actual_end_date
        self.status = dto.status.value
        self.previous_status = dto.previous_status.value if dto.previous_status else None
        self.hold_reason = dto.hold_reason
        self.cancellation_reason = dto.cancellation_reason
        self.released_at = dto.released_at
        self.closed_at = dto.closed_at
        self.parent_work_order_id = dto.parent_work_order_id
        self.sales_order_id = dto.sales_order_id
        self.source_reference = dto.source_reference
        self.lines = [WorkOrderLineModel.from_dto(line, dto.id) for line in dto.lines]

    def __repr__(self) -> str:
        return f"<WorkOrderModel {self.number} product={self.product_id} status={self.status}>"


# =============================================================================
# WorkOrderLineModel
# =============================================================================

class WorkOrderLineModel(TrackedBase):
    """
    ORM model for work order material and operation lines.

    Maps to: mfg_modules.work_order.models.WorkOrderLine (frozen dataclass).
    """

    __tablename__ = "mfg_work_order_lines"

    __table_args__ = (
        UniqueConstraint("work_order_id", "line_number", name="uq_mfg_work_order_line"),
        Index("idx_mfg_wol_work_order", "work_order_id"),
        Index("idx_mfg_wol_work_center", "work_center_id"),
    )

    work_order_id: Mapped[UUID] = mapped_column(ForeignKey("mfg_work_orders.id"))
    line_number: Mapped[int] = mapped_column(Integer)
    line_type: Mapped[str] = mapped_column(String(50))
    product_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    planned_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    issued_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    uom: Mapped[str | None] = mapped_column(String(20), nullable=True)
    operation_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    work_center_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    planned_setup_hours: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    planned_run_hours: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    actual_setup_hours: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    actual_run_hours: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    scrap_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    lot_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    work_order: Mapped["WorkOrderModel"] = relationship(back_populates="lines")

    def to_dto(self):
        """Convert ORM model to frozen WorkOrderLine DTO."""
        from mfg_modules.work_order.models import LineType, WorkOrderLine
        return WorkOrderLine(
            line_number=self.line_number,
            line_type=LineType(self.line_type),
            product_id=self.product_id,
            planned_quantity=self.planned_quantity,
            issued_quantity=self.issued_quantity,
            uom=self.uom,
            operation_number=self.operation_number,
            work_center_id=self.work_center_id,
            planned_setup_hours=self.planned_setup_hours,
            planned_run_hours=self.planned_run_hours,
            actual_setup_hours=self.actual_setup_hours,
            actual_run_hours=self.actual_run_hours,
            scrap_quantity=self.scrap_quantity,
            lot_number=self.lot_number,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, work_order_id: UUID) -> "WorkOrderLineModel":
        """Create ORM model from frozen WorkOrderLine DTO."""
        return cls(
            work_order_id=work_order_id,
            line_number=dto.line_number,
            line_type=dto.line_type.value,
            product_id=dto.product_id,
            planned_quantity=dto.planned_quantity,
            issued_quantity=dto.issued_quantity,
            uom=dto.uom,
            operation_number=dto.operation_number,
            work_center_id=dto.work_center_id,
            planned_setup_hours=dto.planned_setup_hours,
            planned_run_hours=dto.planned_run_hours,
            actual_setup_hours=dto.actual_setup_hours,
            actual_run_hours=dto.actual_run_hours,
            scrap_quantity=dto.scrap_quantity,
            lot_number=dto.lot_number,
            notes=dto.notes,
        )

    def __repr__(self) -> str:
        return f"<WorkOrderLineModel {self.line_number} {self.line_type}>"
