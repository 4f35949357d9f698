"""
Module: mfg_modules.routing.orm
Responsibility: SQLAlchemy ORM persistence models for routings and their
    operations (``mfg_routings`` / ``mfg_routing_operations``).

Architecture position: Modules > Routing > ORM.  Inherits from TrackedBase.
    Work center ids are stored as UUID columns WITHOUT a foreign key so that
    routings can be loaded independently of the work center tables.

Invariants enforced:
    - Times, rates and percentages use Decimal (Numeric(28,9)).
    - (product_id, version) is unique (uq_mfg_routing_product_version).
    - (routing_id, operation_number) is unique (uq_mfg_routing_operation).

Failure modes:
    - IntegrityError on duplicate version or operation number.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mfg_kernel.db.base import TrackedBase, UUIDString


# =============================================================================
# RoutingModel
# =============================================================================

class RoutingModel(TrackedBase):
    """
    ORM model for a routing version header.

    Maps to: mfg_modules.routing.models.Routing (frozen dataclass).
    """

    __tablename__ = "mfg_routings"

    __table_args__ = (
        UniqueConstraint("product_id", "version", name="uq_mfg_routing_product_version"),
        Index("idx_mfg_routing_product", "product_id"),
    )

    product_id: Mapped[str] = mapped_column(String(100))
    version: Mapped[str] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(50), default="draft")
    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    previous_version_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    operations: Mapped[list["OperationModel"]] = relationship(
        back_populates="routing",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OperationModel.operation_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen Routing DTO."""
        from mfg_modules.routing.models import Routing, RoutingStatus
        return Routing(
            id=self.id,
            product_id=self.product_id,
            version=self.version,
            operations=tuple(op.to_dto() for op in self.operations),
            status=RoutingStatus(self.status),
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            previous_version_id=self.previous_version_id,
        )

    @classmethod
    def from_dto(cls, dto) -> "RoutingModel":
        """Create ORM model (with operation children) from frozen Routing DTO."""
        model = cls(
            id=dto.id,
            product_id=dto.product_id,
            version=dto.version,
            status=dto.status.value,
            effective_from=dto.effective_from,
            effective_to=dto.effective_to,
            previous_version_id=dto.previous_version_id,
        )
        model.operations = [OperationModel.from_dto(op, dto.id) for op in dto.operations]
        return model

    def apply_dto(self, dto) -> None:
        """Overwrite header fields and replace all operations from ``dto``."""
        self.version = dto.version
        self.status = dto.status.value
        self.effective_from = dto.effective_from
        self.effective_to = dto.effective_to
        self.previous_version_id = dto.previous_version_id
        self.operations = [OperationModel.from_dto(op, dto.id) for op in dto.operations]

    def __repr__(self) -> str:
        return f"<RoutingModel {self.product_id} v{self.version} status={self.status}>"


# =============================================================================
# OperationModel
# =============================================================================

class OperationModel(TrackedBase):
    """
    ORM model for one routing operation.

    Maps to: mfg_modules.routing.models.Operation (frozen dataclass).
    """

    __tablename__ = "mfg_routing_operations"

    __table_args__ = (
        UniqueConstraint("routing_id", "operation_number", name="uq_mfg_routing_operation"),
        Index("idx_mfg_routing_op_routing", "routing_id"),
        Index("idx_mfg_routing_op_work_center", "work_center_id"),
    )

    routing_id: Mapped[UUID] = mapped_column(ForeignKey("mfg_routings.id"))
    operation_number: Mapped[int] = mapped_column(Integer)
    work_center_id: Mapped[UUID] = mapped_column(UUIDString())
    description: Mapped[str] = mapped_column(String(255), default="")
    operation_type: Mapped[str] = mapped_column(String(50), default="production")
    setup_time_minutes: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    run_time_minutes: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    queue_time_minutes: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    move_time_minutes: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    resource_count: Mapped[int] = mapped_column(Integer, default=1)
    overlap_percentage: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    subcontractor_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    subcontract_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    routing: Mapped["RoutingModel"] = relationship(back_populates="operations")

    def to_dto(self):
        """Convert ORM model to frozen Operation DTO."""
        from mfg_modules.routing.models import Operation, OperationType
        return Operation(
            operation_number=self.operation_number,
            work_center_id=self.work_center_id,
            description=self.description,
            operation_type=OperationType(self.operation_type),
            setup_time_minutes=self.setup_time_minutes,
            run_time_minutes=self.run_time_minutes,
            queue_time_minutes=self.queue_time_minutes,
            move_time_minutes=self.move_time_minutes,
            resource_count=self.resource_count,
            overlap_percentage=self.overlap_percentage,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            subcontractor_id=self.subcontractor_id,
            subcontract_cost=self.subcontract_cost,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, routing_id: UUID) -> "OperationModel":
        """Create ORM model from frozen Operation DTO."""
        return cls(
            routing_id=routing_id,
            operation_number=dto.operation_number,
            work_center_id=dto.work_center_id,
            description=dto.description,
            operation_type=dto.operation_type.value,
            setup_time_minutes=dto.setup_time_minutes,
            run_time_minutes=dto.run_time_minutes,
            queue_time_minutes=dto.queue_time_minutes,
            move_time_minutes=dto.move_time_minutes,
            resource_count=dto.resource_count,
            overlap_percentage=dto.overlap_percentage,
            effective_from=dto.effective_from,
            effective_to=dto.effective_to,
            subcontractor_id=dto.subcontractor_id,
            subcontract_cost=dto.subcontract_cost,
            notes=dto.notes,
        )

    def __repr__(self) -> str:
        return f"<OperationModel {self.operation_number} wc={self.work_center_id}>"
