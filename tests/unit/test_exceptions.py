"""Tests for the typed exception hierarchy."""

import pytest

from mfg_kernel.exceptions import (
    BomNotFoundError,
    CalculationError,
    CircularDependencyError,
    ForecastUnavailableError,
    InvalidStatusTransitionError,
    InvalidVersionError,
    ManufacturingError,
    NotFoundError,
    NotModifiableError,
    ReleaseRejectedError,
    RoutingNotFoundError,
    VersionExistsError,
    WorkCenterNotFoundError,
    WorkOrderNotFoundError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc_type",
        [BomNotFoundError, RoutingNotFoundError, WorkCenterNotFoundError, WorkOrderNotFoundError],
    )
    def test_lookup_errors_are_not_found(self, exc_type):
        assert issubclass(exc_type, NotFoundError)
        assert issubclass(exc_type, ManufacturingError)

    @pytest.mark.parametrize(
        "exc_type", [VersionExistsError, NotModifiableError, ReleaseRejectedError],
    )
    def test_version_errors(self, exc_type):
        assert issubclass(exc_type, InvalidVersionError)

    def test_codes_are_distinct(self):
        codes = [
            BomNotFoundError.code,
            RoutingNotFoundError.code,
            CircularDependencyError.code,
            VersionExistsError.code,
            NotModifiableError.code,
            InvalidStatusTransitionError.code,
            CalculationError.code,
            ForecastUnavailableError.code,
        ]
        assert len(codes) == len(set(codes))


class TestMessages:
    def test_circular_dependency_carries_path(self):
        exc = CircularDependencyError(("A", "B", "A"))
        assert exc.path == ("A", "B", "A")
        assert "A -> B -> A" in str(exc)

    def test_transition_error_names_action_and_status(self):
        exc = InvalidStatusTransitionError("wo-1", "planned", "start")
        assert exc.current_status == "planned"
        assert exc.attempted == "start"
        assert "cannot start" in str(exc)

    def test_bom_not_found_as_of(self):
        exc = BomNotFoundError(product_id="BIKE", as_of="2024-01-01")
        assert "BIKE" in str(exc)
        assert "2024-01-01" in str(exc)

    def test_calculation_error_keeps_every_problem(self):
        exc = CalculationError("BIKE", ["first", "second"])
        assert exc.errors == ("first", "second")
        assert "first; second" in str(exc)
