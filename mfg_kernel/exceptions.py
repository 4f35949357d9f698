"""
Typed Exception Hierarchy for the Manufacturing Planning Core.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Planning callers (API handlers, batch jobs, the capacity resolver) need to
react to failures by kind, not by parsing message text:

    try:
        bom_manager.add_line(bom_id, line)
    except CircularDependencyError as e:
        show_cycle(e.path)              # Structured data
    except NotModifiableError as e:
        api_response(code=e.code)       # Machine-readable

Every exception therefore:
  1. Has its own class (catch by type)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured attributes (ids, statuses, paths)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ManufacturingError (base)
    |
    +-- NotFoundError
    |   +-- BomNotFoundError
    |   +-- RoutingNotFoundError
    |   +-- WorkCenterNotFoundError
    |   +-- WorkOrderNotFoundError
    |   +-- WorkOrderLineNotFoundError
    |
    +-- CircularDependencyError
    |
    +-- InvalidVersionError
    |   +-- VersionExistsError
    |   +-- NotModifiableError
    |   +-- ReleaseRejectedError
    |
    +-- InvalidStatusTransitionError
    +-- InvalidQuantityError
    +-- CalculationError
    +-- ForecastUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|------------------------------------------
Lookup       | BOM_NOT_FOUND               | No BOM by id, or no effective BOM for product
             | ROUTING_NOT_FOUND           | No routing by id / effective for product
             | WORK_CENTER_NOT_FOUND       | Unknown work center id or code
             | WORK_ORDER_NOT_FOUND        | Unknown work order id or number
             | WORK_ORDER_LINE_NOT_FOUND   | Material/operation line missing on order
-------------|-----------------------------|------------------------------------------
Structure    | CIRCULAR_DEPENDENCY         | Component graph contains a cycle
-------------|-----------------------------|------------------------------------------
Versioning   | VERSION_EXISTS              | Duplicate version string for product
             | NOT_MODIFIABLE              | Edit attempted on released/obsolete entity
             | RELEASE_REJECTED            | Release of BOM/routing with no lines
-------------|-----------------------------|------------------------------------------
Lifecycle    | INVALID_STATUS_TRANSITION   | Work order state machine violation
             | INVALID_QUANTITY            | Quantity below completed / split too large
-------------|-----------------------------|------------------------------------------
Planning     | CALCULATION_ERROR           | Failure inside an MRP calculation
             | FORECAST_UNAVAILABLE        | No forecast provider produced a result

===============================================================================
PROPAGATION
===============================================================================

Lookup, versioning and lifecycle errors are raised to the immediate caller.
MRP calculation failures are the exception: ``MrpEngine`` captures them into
``MrpResult.errors`` so that partial plans stay usable.  Validation helpers
(``BomManager.validate``, ``CapacityResolver.validate_suggestion``) return
problem lists and never raise.
"""

from collections.abc import Iterable


class ManufacturingError(Exception):
    """
    Base exception for all manufacturing planning errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "MANUFACTURING_ERROR"


# Lookup errors


class NotFoundError(ManufacturingError):
    """Base exception for failed lookups."""

    code: str = "NOT_FOUND"


class BomNotFoundError(NotFoundError):
    """No BOM with the given id, or no effective BOM for the product."""

    code: str = "BOM_NOT_FOUND"

    def __init__(
        self,
        bom_id: str | None = None,
        product_id: str | None = None,
        as_of: str | None = None,
    ):
        self.bom_id = bom_id
        self.product_id = product_id
        self.as_of = as_of
        if bom_id is not None:
            message = f"BOM not found: {bom_id}"
        elif as_of is not None:
            message = f"No effective BOM for product {product_id} as of {as_of}"
        else:
            message = f"No BOM for product {product_id}"
        super().__init__(message)


class RoutingNotFoundError(NotFoundError):
    """No routing with the given id, or no effective routing for the product."""

    code: str = "ROUTING_NOT_FOUND"

    def __init__(
        self,
        routing_id: str | None = None,
        product_id: str | None = None,
        as_of: str | None = None,
    ):
        self.routing_id = routing_id
        self.product_id = product_id
        self.as_of = as_of
        if routing_id is not None:
            message = f"Routing not found: {routing_id}"
        elif as_of is not None:
            message = f"No effective routing for product {product_id} as of {as_of}"
        else:
            message = f"No routing for product {product_id}"
        super().__init__(message)


class WorkCenterNotFoundError(NotFoundError):
    """Work center with the given id or code was not found."""

    code: str = "WORK_CENTER_NOT_FOUND"

    def __init__(self, work_center_id: str | None = None, code: str | None = None):
        self.work_center_id = work_center_id
        self.work_center_code = code
        if work_center_id is not None:
            message = f"Work center not found: {work_center_id}"
        else:
            message = f"Work center not found for code: {code}"
        super().__init__(message)


class WorkOrderNotFoundError(NotFoundError):
    """Work order with the given id or number was not found."""

    code: str = "WORK_ORDER_NOT_FOUND"

    def __init__(self, work_order_id: str | None = None, number: str | None = None):
        self.work_order_id = work_order_id
        self.number = number
        if work_order_id is not None:
            message = f"Work order not found: {work_order_id}"
        else:
            message = f"Work order not found for number: {number}"
        super().__init__(message)


class WorkOrderLineNotFoundError(NotFoundError):
    """A material or operation line is missing from a work order."""

    code: str = "WORK_ORDER_LINE_NOT_FOUND"

    def __init__(self, work_order_id: str, reference: str):
        self.work_order_id = work_order_id
        self.reference = reference
        super().__init__(
            f"Work order {work_order_id} has no line matching {reference}"
        )


# Structure errors


class CircularDependencyError(ManufacturingError):
    """The component graph contains a cycle; ``path`` lists the product ids."""

    code: str = "CIRCULAR_DEPENDENCY"

    def __init__(self, path: Iterable[str]):
        self.path = tuple(path)
        super().__init__(
            f"Circular BOM dependency: {' -> '.join(self.path)}"
        )


# Versioning errors


class InvalidVersionError(ManufacturingError):
    """Base exception for version and draft-state violations."""

    code: str = "INVALID_VERSION"


class VersionExistsError(InvalidVersionError):
    """The product already has a BOM or routing with this version string."""

    code: str = "VERSION_EXISTS"

    def __init__(self, entity: str, product_id: str, version: str):
        self.entity = entity
        self.product_id = product_id
        self.version = version
        super().__init__(
            f"{entity} version {version} already exists for product {product_id}"
        )


class NotModifiableError(InvalidVersionError):
    """Modification attempted on a BOM or routing that is not a draft."""

    code: str = "NOT_MODIFIABLE"

    def __init__(self, entity: str, entity_id: str, status: str):
        self.entity = entity
        self.entity_id = entity_id
        self.status = status
        super().__init__(
            f"Cannot modify {entity} {entity_id} in status {status}"
        )


class ReleaseRejectedError(InvalidVersionError):
    """Release refused (e.g. the BOM has no lines)."""

    code: str = "RELEASE_REJECTED"

    def __init__(self, entity: str, entity_id: str, reason: str):
        self.entity = entity
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot release {entity} {entity_id}: {reason}")


# Lifecycle errors


class InvalidStatusTransitionError(ManufacturingError):
    """Work order state machine violation."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, work_order_id: str, current_status: str, attempted: str):
        self.work_order_id = work_order_id
        self.current_status = current_status
        self.attempted = attempted
        super().__init__(
            f"Work order {work_order_id}: cannot {attempted} "
            f"from status {current_status}"
        )


class InvalidQuantityError(ManufacturingError):
    """Quantity change rejected by a work order rule."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, work_order_id: str, requested: str, reason: str):
        self.work_order_id = work_order_id
        self.requested = requested
        self.reason = reason
        super().__init__(
            f"Work order {work_order_id}: invalid quantity {requested} ({reason})"
        )


# Planning errors


class CalculationError(ManufacturingError):
    """Failure inside an MRP calculation."""

    code: str = "CALCULATION_ERROR"

    def __init__(self, product_id: str, errors: Iterable[str]):
        self.product_id = product_id
        self.errors = tuple(errors)
        super().__init__(
            f"MRP calculation failed for {product_id}: {'; '.join(self.errors)}"
        )


class ForecastUnavailableError(ManufacturingError):
    """Neither the ML provider nor the historical fallback produced a forecast."""

    code: str = "FORECAST_UNAVAILABLE"

    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        super().__init__(f"No forecast provider available for {subject_id}")
