"""
Routing Manager (``mfg_modules.routing.service``).

Responsibility
--------------
Lifecycle and versioning of routings, plus the three routing-derived
calculations the planning core needs: manufacturing lead time, routing
cost and per-work-center capacity requirement.

Architecture position
---------------------
**Modules layer** -- written against the ``RoutingRepository`` contract.
Consumed by the capacity planner (planned-order load) and the work order
manager (operation line generation).

Invariants enforced
-------------------
* Only draft routings accept operation edits (``NotModifiableError``).
* Version strings are unique per product (``VersionExistsError``).
* A routing with no operations cannot be released (``ReleaseRejectedError``).
* Cost never reports labor or machine figures it could not price:
  without a rate for every capacity-consuming operation those figures
  are ``None`` and ``RoutingCost.is_complete`` is False.

Failure modes
-------------
* ``RoutingNotFoundError`` for unknown ids or products without an
  effective routing.
* ``ValueError`` for duplicate or missing operation numbers.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from mfg_kernel.domain.clock import Clock, SystemClock
from mfg_kernel.exceptions import (
    NotModifiableError,
    ReleaseRejectedError,
    RoutingNotFoundError,
    VersionExistsError,
)
from mfg_kernel.logging_config import get_logger
from mfg_modules.routing.models import (
    MINUTES_PER_HOUR,
    Operation,
    OperationRates,
    Routing,
    RoutingCost,
    RoutingStatus,
    WorkCenterRequirement,
)
from mfg_modules.routing.repository import RoutingRepository

logger = get_logger("modules.routing.service")

RateLookup = Callable[[UUID], OperationRates | None]


class RoutingManager:
    """
    Manages routing versions and routing-derived calculations.

    Contract
    --------
    * Mutating methods return the new immutable ``Routing`` after writing it.
    * Calculations take the effective routing of the product on ``as_of``
      (default: today) and only its effective operations.

    Non-goals
    ---------
    * Does NOT own work center rates; pricing needs a ``rate_lookup``.
    """

    def __init__(
        self,
        repository: RoutingRepository,
        clock: Clock | None = None,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()

    # =========================================================================
    # Lookup
    # =========================================================================

    def find_by_id(self, routing_id: UUID) -> Routing:
        routing = self._repository.get(routing_id)
        if routing is None:
            raise RoutingNotFoundError(routing_id=str(routing_id))
        return routing

    def find_by_product_id(self, product_id: str, as_of: date | None = None) -> Routing:
        as_of = as_of or self._clock.today()
        routing = self._repository.find_by_product_id(product_id, as_of)
        if routing is None:
            raise RoutingNotFoundError(product_id=product_id, as_of=as_of.isoformat())
        return routing

    def get_effective(self, product_id: str, as_of: date | None = None) -> Routing | None:
        return self._repository.find_by_product_id(product_id, as_of or self._clock.today())

    def find_all_versions(self, product_id: str) -> list[Routing]:
        return self._repository.find_all_versions(product_id)

    def effective_operations(
        self, routing_id: UUID, as_of: date | None = None,
    ) -> tuple[Operation, ...]:
        routing = self.find_by_id(routing_id)
        return routing.effective_operations(as_of or self._clock.today())

    def work_center_operations(
        self, work_center_id: UUID, as_of: date | None = None,
    ) -> list[tuple[Routing, Operation]]:
        return self._repository.find_operations_by_work_center(
            work_center_id, as_of or self._clock.today(),
        )

    # =========================================================================
    # Lifecycle and versioning
    # =========================================================================

    def create(
        self,
        product_id: str,
        operations: Iterable[Operation] = (),
        version: str = "1.0",
        effective_from: date | None = None,
        effective_to: date | None = None,
    ) -> Routing:
        self._ensure_version_free(product_id, version)
        routing = Routing(
            product_id=product_id,
            version=version,
            operations=tuple(operations),
            effective_from=effective_from,
            effective_to=effective_to,
        )
        self._repository.add(routing)
        logger.info(
            "routing_created",
            extra={
                "routing_id": str(routing.id),
                "product_id": product_id,
                "version": version,
                "operation_count": len(routing.operations),
            },
        )
        return routing

    def create_version(
        self,
        routing_id: UUID,
        new_version: str,
        effective_from: date | None = None,
    ) -> Routing:
        source = self.find_by_id(routing_id)
        self._ensure_version_free(source.product_id, new_version)
        routing = Routing(
            product_id=source.product_id,
            version=new_version,
            operations=source.operations,
            effective_from=effective_from,
            previous_version_id=source.id,
        )
        self._repository.add(routing)
        logger.info(
            "routing_version_created",
            extra={
                "routing_id": str(routing.id),
                "product_id": routing.product_id,
                "version": new_version,
                "previous_version_id": str(source.id),
            },
        )
        return routing

    def release(self, routing_id: UUID, effective_from: date | None = None) -> Routing:
        """Release a draft; overlapping released versions are closed or obsoleted."""
        routing = self.find_by_id(routing_id)
        if not routing.is_draft:
            raise NotModifiableError("routing", str(routing_id), routing.status.value)
        if not routing.operations:
            logger.warning("routing_release_rejected", extra={"routing_id": str(routing_id)})
            raise ReleaseRejectedError("routing", str(routing_id), "Routing has no operations")

        start = effective_from or routing.effective_from or self._clock.today()
        for other in self._repository.find_all_versions(routing.product_id):
            if other.id == routing.id or other.status != RoutingStatus.RELEASED:
                continue
            if other.effective_to is not None and other.effective_to < start:
                continue
            if other.effective_from is not None and other.effective_from >= start:
                self._repository.update(replace(other, status=RoutingStatus.OBSOLETE))
            else:
                self._repository.update(
                    replace(other, effective_to=start - timedelta(days=1))
                )
            logger.info(
                "routing_superseded",
                extra={"routing_id": str(other.id), "superseded_by": str(routing_id)},
            )

        released = replace(routing, status=RoutingStatus.RELEASED, effective_from=start)
        self._repository.update(released)
        logger.info(
            "routing_released",
            extra={
                "routing_id": str(routing_id),
                "product_id": routing.product_id,
                "effective_from": start.isoformat(),
            },
        )
        return released

    def obsolete(self, routing_id: UUID, effective_to: date | None = None) -> Routing:
        routing = self.find_by_id(routing_id)
        if routing.status == RoutingStatus.OBSOLETE:
            raise NotModifiableError("routing", str(routing_id), routing.status.value)
        result = replace(
            routing,
            status=RoutingStatus.OBSOLETE,
            effective_to=effective_to or routing.effective_to,
        )
        self._repository.update(result)
        logger.info("routing_obsoleted", extra={"routing_id": str(routing_id)})
        return result

    # =========================================================================
    # Operation maintenance (drafts only)
    # =========================================================================

    def add_operation(self, routing_id: UUID, operation: Operation) -> Routing:
        routing = self._get_draft(routing_id)
        if routing.operation(operation.operation_number) is not None:
            raise ValueError(
                f"Operation {operation.operation_number} already exists "
                f"in routing {routing_id}"
            )
        result = replace(routing, operations=routing.operations + (operation,))
        self._repository.update(result)
        logger.info(
            "routing_operation_added",
            extra={
                "routing_id": str(routing_id),
                "operation_number": operation.operation_number,
                "work_center_id": str(operation.work_center_id),
            },
        )
        return result

    def update_operation(self, routing_id: UUID, operation: Operation) -> Routing:
        routing = self._get_draft(routing_id)
        if routing.operation(operation.operation_number) is None:
            raise ValueError(
                f"Operation {operation.operation_number} not found in routing {routing_id}"
            )
        result = replace(
            routing,
            operations=tuple(
                operation if op.operation_number == operation.operation_number else op
                for op in routing.operations
            ),
        )
        self._repository.update(result)
        logger.info(
            "routing_operation_updated",
            extra={
                "routing_id": str(routing_id),
                "operation_number": operation.operation_number,
            },
        )
        return result

    def remove_operation(self, routing_id: UUID, operation_number: int) -> Routing:
        routing = self._get_draft(routing_id)
        if routing.operation(operation_number) is None:
            raise ValueError(
                f"Operation {operation_number} not found in routing {routing_id}"
            )
        result = replace(
            routing,
            operations=tuple(
                op for op in routing.operations if op.operation_number != operation_number
            ),
        )
        self._repository.update(result)
        logger.info(
            "routing_operation_removed",
            extra={"routing_id": str(routing_id), "operation_number": operation_number},
        )
        return result

    # =========================================================================
    # Calculations
    # =========================================================================

    def calculate_lead_time(
        self,
        product_id: str,
        quantity: Decimal = Decimal("1"),
        as_of: date | None = None,
    ) -> Decimal:
        """
        Manufacturing lead time in hours.

        Operations are taken in operation-number order.  Each operation's
        elapsed time is reduced by the overlap percentage of the operation
        before it, floored at zero.
        """
        as_of = as_of or self._clock.today()
        routing = self.find_by_product_id(product_id, as_of)

        total_minutes = Decimal("0")
        previous_overlap = Decimal("0")
        for operation in routing.effective_operations(as_of):
            minutes = operation.total_time_minutes(quantity)
            adjusted = minutes - minutes * previous_overlap / Decimal("100")
            total_minutes += max(Decimal("0"), adjusted)
            previous_overlap = operation.overlap_percentage

        return total_minutes / MINUTES_PER_HOUR

    def calculate_cost(
        self,
        routing_id: UUID,
        quantity: Decimal,
        rate_lookup: RateLookup | None = None,
        as_of: date | None = None,
    ) -> RoutingCost:
        """
        Cost of running ``quantity`` units through the routing.

        Subcontract cost is summed from the operations.  Labor and machine
        cost are priced per work center through ``rate_lookup``; when it is
        absent or any capacity-consuming operation lacks a rate, the
        corresponding figure is None rather than zero.
        """
        routing = self.find_by_id(routing_id)
        operations = routing.effective_operations(as_of or self._clock.today())

        subcontract = sum(
            (op.subcontract_cost or Decimal("0") for op in operations if op.is_subcontracted),
            Decimal("0"),
        )
        if rate_lookup is None:
            logger.info(
                "routing_cost_partial",
                extra={"routing_id": str(routing_id), "reason": "no_rate_lookup"},
            )
            return RoutingCost(quantity=quantity, subcontract_cost=subcontract)

        labor: Decimal | None = Decimal("0")
        machine: Decimal | None = Decimal("0")
        missing: list[UUID] = []
        for op in operations:
            hours = op.capacity_hours(quantity)
            if hours == 0:
                continue
            rates = rate_lookup(op.work_center_id) or OperationRates()
            if rates.labor_per_hour is None or rates.machine_per_hour is None:
                if op.work_center_id not in missing:
                    missing.append(op.work_center_id)
            if labor is not None:
                labor = (
                    None if rates.labor_per_hour is None
                    else labor + hours * op.resource_count * rates.labor_per_hour
                )
            if machine is not None:
                machine = (
                    None if rates.machine_per_hour is None
                    else machine + hours * rates.machine_per_hour
                )

        if missing:
            logger.warning(
                "routing_cost_missing_rates",
                extra={
                    "routing_id": str(routing_id),
                    "work_center_ids": [str(wc) for wc in missing],
                },
            )
        return RoutingCost(
            quantity=quantity,
            subcontract_cost=subcontract,
            labor_cost=labor,
            machine_cost=machine,
            missing_rates=tuple(missing),
        )

    def calculate_capacity_requirement(
        self,
        product_id: str,
        quantity: Decimal,
        as_of: date | None = None,
    ) -> list[WorkCenterRequirement]:
        """Setup and run hours per work center, in first-use order."""
        as_of = as_of or self._clock.today()
        routing = self.find_by_product_id(product_id, as_of)

        setup: dict[UUID, Decimal] = {}
        run: dict[UUID, Decimal] = {}
        ops: dict[UUID, list[int]] = {}
        for op in routing.effective_operations(as_of):
            if not op.operation_type.consumes_capacity:
                continue
            wc = op.work_center_id
            setup[wc] = setup.get(wc, Decimal("0")) + op.setup_hours()
            run[wc] = run.get(wc, Decimal("0")) + op.run_hours(quantity)
            ops.setdefault(wc, []).append(op.operation_number)

        return [
            WorkCenterRequirement(
                work_center_id=wc,
                setup_hours=setup[wc],
                run_hours=run[wc],
                operation_numbers=tuple(ops[wc]),
            )
            for wc in ops
        ]

    # =========================================================================
    # Internals
    # =========================================================================

    def _get_draft(self, routing_id: UUID) -> Routing:
        routing = self.find_by_id(routing_id)
        if not routing.is_draft:
            logger.warning(
                "routing_modification_rejected",
                extra={"routing_id": str(routing_id), "status": routing.status.value},
            )
            raise NotModifiableError("routing", str(routing_id), routing.status.value)
        return routing

    def _ensure_version_free(self, product_id: str, version: str) -> None:
        for existing in self._repository.find_all_versions(product_id):
            if existing.version == version:
                raise VersionExistsError("routing", product_id, version)
