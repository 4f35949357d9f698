"""
Module: mfg_modules.bom.orm
Responsibility: SQLAlchemy ORM persistence models for Bills of Materials.
    Maps the frozen ``Bom`` / ``BomLine`` DTOs from bom.models to the
    ``mfg_boms`` and ``mfg_bom_lines`` tables.

Architecture position: Modules > BOM > ORM.  Inherits from TrackedBase
    (mfg_kernel.db.base).  Product ids are plain strings owned by the
    surrounding item master, stored WITHOUT foreign key constraints.

Invariants enforced:
    - Quantities and scrap percentages use Decimal (Numeric(28,9)), never float.
    - Enum fields stored as String(50) for portability and readability.
    - (product_id, version) is unique (uq_mfg_bom_product_version).
    - (bom_id, line_number) is unique (uq_mfg_bom_line_number).

Failure modes:
    - IntegrityError on duplicate version or duplicate line number.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mfg_kernel.db.base import TrackedBase, UUIDString


# =============================================================================
# BomModel
# =============================================================================

class BomModel(TrackedBase):
    """
    ORM model for a BOM version header.

    Maps to: mfg_modules.bom.models.Bom (frozen dataclass).
    """

    __tablename__ = "mfg_boms"

    __table_args__ = (
        UniqueConstraint("product_id", "version", name="uq_mfg_bom_product_version"),
        Index("idx_mfg_bom_product", "product_id"),
        Index("idx_mfg_bom_status", "status"),
    )

    product_id: Mapped[str] = mapped_column(String(100))
    version: Mapped[str] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(50), default="draft")
    bom_type: Mapped[str] = mapped_column(String(50), default="manufacturing")
    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    previous_version_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    lines: Mapped[list["BomLineModel"]] = relationship(
        back_populates="bom",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BomLineModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen Bom DTO."""
        from mfg_modules.bom.models import Bom, BomStatus, BomType
        return Bom(
            id=self.id,
            product_id=self.product_id,
            version=self.version,
            lines=tuple(line.to_dto() for line in self.lines),
            status=BomStatus(self.status),
            bom_type=BomType(self.bom_type),
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            previous_version_id=self.previous_version_id,
        )

    @classmethod
    def from_dto(cls, dto) -> "BomModel":
        """Create ORM model (with line children) from frozen Bom DTO."""
        model = cls(
            id=dto.id,
            product_id=dto.product_id,
            version=dto.version,
            status=dto.status.value,
            bom_type=dto.bom_type.value,
            effective_from=dto.effective_from,
            effective_to=dto.effective_to,
            previous_version_id=dto.previous_version_id,
        )
        model.lines = [BomLineModel.from_dto(line, dto.id) for line in dto.lines]
        return model

    def apply_dto(self, dto) -> None:
        """Overwrite header fields and replace all lines from ``dto``."""
        self.version = dto.version
        self.status = dto.status.value
        self.bom_type = dto.bom_type.value
        self.effective_from = dto.effective_from
        self.effective_to = dto.effective_to
        self.previous_version_id = dto.previous_version_id
        self.lines = [BomLineModel.from_dto(line, dto.id) for line in dto.lines]

    def __repr__(self) -> str:
        return f"<BomModel {self.product_id} v{self.version} status={self.status}>"


# =============================================================================
# BomLineModel
# =============================================================================

class BomLineModel(TrackedBase):
    """
    ORM model for one BOM component line.

    Maps to: mfg_modules.bom.models.BomLine (frozen dataclass).
    """

    __tablename__ = "mfg_bom_lines"

    __table_args__ = (
        UniqueConstraint("bom_id", "line_number", name="uq_mfg_bom_line_number"),
        Index("idx_mfg_bom_line_bom", "bom_id"),
        Index("idx_mfg_bom_line_product", "product_id"),
    )

    bom_id: Mapped[UUID] = mapped_column(ForeignKey("mfg_boms.id"))
    line_number: Mapped[int] = mapped_column(Integer)
    product_id: Mapped[str] = mapped_column(String(100))
    quantity: Mapped[Decimal] = mapped_column()
    uom: Mapped[str] = mapped_column(String(20), default="EA")
    scrap_percentage: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    operation_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    effective_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_phantom: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    bom: Mapped["BomModel"] = relationship(back_populates="lines")

    def to_dto(self):
        """Convert ORM model to frozen BomLine DTO."""
        from mfg_modules.bom.models import BomLine
        return BomLine(
            product_id=self.product_id,
            quantity=self.quantity,
            uom=self.uom,
            line_number=self.line_number,
            scrap_percentage=self.scrap_percentage,
            operation_number=self.operation_number,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            is_phantom=self.is_phantom,
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, bom_id: UUID) -> "BomLineModel":
        """Create ORM model from frozen BomLine DTO."""
        return cls(
            bom_id=bom_id,
            line_number=dto.line_number,
            product_id=dto.product_id,
            quantity=dto.quantity,
            uom=dto.uom,
            scrap_percentage=dto.scrap_percentage,
            operation_number=dto.operation_number,
            effective_from=dto.effective_from,
            effective_to=dto.effective_to,
            is_phantom=dto.is_phantom,
            notes=dto.notes,
        )

    def __repr__(self) -> str:
        return f"<BomLineModel {self.line_number} {self.product_id} qty={self.quantity}>"
