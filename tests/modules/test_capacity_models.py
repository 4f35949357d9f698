"""Tests for capacity periods, profiles, suggestions and CapacityConfig."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from mfg_kernel.domain.horizon import PlanningHorizon
from mfg_modules.capacity import (
    CapacityConfig,
    CapacityLoad,
    CapacityPeriod,
    CapacityProfile,
    CapacityResolutionSuggestion,
    LoadLevelingMove,
    LoadSourceType,
    ResolutionAction,
)

WC = uuid4()


def _period(start, days, available, loaded):
    return CapacityPeriod(
        period_start=start,
        period_end=date.fromordinal(start.toordinal() + days),
        available_hours=Decimal(available),
        loaded_hours=Decimal(loaded),
    )


class TestCapacityLoad:
    def test_hours_and_firmness(self):
        load = CapacityLoad(
            uuid4(), LoadSourceType.WORK_ORDER, WC,
            Decimal("1.5"), Decimal("4"), date(2024, 1, 2),
        )
        assert load.hours == Decimal("5.5")
        assert load.is_firm

    def test_negative_hours_rejected(self):
        with pytest.raises(ValueError):
            CapacityLoad(
                uuid4(), LoadSourceType.PLANNED_ORDER, WC,
                Decimal("-1"), Decimal("0"), date(2024, 1, 2),
            )


class TestCapacityPeriod:
    def test_overloaded_period(self):
        period = _period(date(2024, 1, 1), 7, "40", "46")
        assert period.is_overloaded
        assert period.excess_hours == Decimal("6")
        assert period.remaining_hours == Decimal("0")
        assert period.utilization == Decimal("115")
        assert period.label == "2024-W01"

    def test_zero_available_with_load_is_full(self):
        period = _period(date(2024, 1, 6), 1, "0", "2")
        assert period.utilization == Decimal("100")
        assert period.label == "2024-01-06"

    def test_monthly_label(self):
        assert _period(date(2024, 2, 1), 29, "160", "0").label == "2024-02"

    def test_has_capacity(self):
        period = _period(date(2024, 1, 1), 1, "8", "5")
        assert period.has_capacity(Decimal("3"))
        assert not period.has_capacity(Decimal("3.5"))

    def test_additional_load(self):
        period = _period(date(2024, 1, 1), 1, "8", "0")
        load = CapacityLoad(
            uuid4(), LoadSourceType.PLANNED_ORDER, WC,
            Decimal("0"), Decimal("3"), date(2024, 1, 1),
        )
        updated = period.with_additional_load(load)
        assert updated.loaded_hours == Decimal("3")
        assert updated.loads == (load,)

    def test_end_must_follow_start(self):
        with pytest.raises(ValueError):
            _period(date(2024, 1, 1), 0, "8", "0")


class TestCapacityProfile:
    def test_totals(self):
        horizon = PlanningHorizon.for_weeks(date(2024, 1, 1), 2)
        periods = (
            _period(date(2024, 1, 1), 7, "40", "46"),
            _period(date(2024, 1, 8), 7, "40", "10"),
        )
        profile = CapacityProfile(WC, horizon, periods, Decimal("80"), Decimal("56"))

        assert not profile.is_overloaded
        assert profile.available_capacity == Decimal("24")
        assert profile.utilization == Decimal("70")
        assert profile.overloaded_periods == (periods[0],)
        assert profile.peak_period is periods[0]
        assert profile.period_for(date(2024, 1, 10)) is periods[1]
        assert profile.period_for(date(2024, 1, 15)) is None


class TestSuggestions:
    def test_default_priorities(self):
        alternate = CapacityResolutionSuggestion.alternative_work_center(WC, uuid4(), Decimal("6"))
        overtime = CapacityResolutionSuggestion.overtime(WC, Decimal("6"), Decimal("75"))
        assert alternate.priority == 1
        assert overtime.priority == 2
        assert alternate.has_higher_priority_than(overtime)
        assert alternate.can_auto_apply
        assert not overtime.can_auto_apply

    def test_overtime_cost(self):
        overtime = CapacityResolutionSuggestion.overtime(WC, Decimal("6"), Decimal("75"))
        assert overtime.estimated_cost == Decimal("450")
        assert overtime.cost_per_hour == Decimal("75")
        assert not overtime.is_low_cost()

    def test_reschedule_delay(self):
        suggestion = CapacityResolutionSuggestion.reschedule(
            WC, date(2024, 1, 1), date(2024, 1, 8), Decimal("6"),
        )
        assert suggestion.days_delayed == 7
        assert suggestion.lead_time_impact == 7
        assert not suggestion.improves_delivery

    def test_effectiveness(self):
        split = CapacityResolutionSuggestion.split(WC, Decimal("3"))
        assert split.requires_approval
        assert split.effectiveness(Decimal("6")) == Decimal("50")
        assert not split.fully_resolves(Decimal("6"))
        assert split.effectiveness(Decimal("0")) == Decimal("100")

    def test_explicit_priority_kept(self):
        suggestion = CapacityResolutionSuggestion(
            action=ResolutionAction.MANUAL,
            description="Call the planner",
            resolves_hours=Decimal("0"),
            priority=3,
        )
        assert suggestion.priority == 3
        assert suggestion.with_priority(5).priority == 5

    def test_negative_hours_rejected(self):
        with pytest.raises(ValueError):
            CapacityResolutionSuggestion(
                action=ResolutionAction.MANUAL,
                description="bad",
                resolves_hours=Decimal("-1"),
            )

    def test_to_dict(self):
        data = CapacityResolutionSuggestion.cancel(uuid4(), Decimal("6")).to_dict()
        assert data["action"] == "cancel"
        assert data["action_label"] == "Cancel"
        assert data["priority"] == 7
        assert data["work_center_id"] is None


class TestLoadLevelingMove:
    def test_days_delayed(self):
        move = LoadLevelingMove(uuid4(), "PART", date(2024, 1, 1), date(2024, 1, 4))
        assert move.days_delayed == 3


class TestCapacityConfig:
    def test_from_dict(self):
        config = CapacityConfig.from_dict({"overtime_cost_per_hour": "90"})
        assert config.overtime_cost_per_hour == Decimal("90")

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValueError, match="Unknown capacity config keys"):
            CapacityConfig.from_dict({"overtime": 1})

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"split_resolution_ratio": Decimal("0")},
            {"max_overtime_hours_per_day": Decimal("-1")},
            {"resolution_window_days": 0},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            CapacityConfig(**kwargs)
