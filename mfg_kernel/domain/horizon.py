"""
Planning horizon and time buckets.

A horizon is a half-open date range ``[start_date, end_date)`` split into
day, week or month buckets.  Every bucket also knows which planning zone it
starts in (frozen / slushy / liquid), counted in days from the horizon start.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum


class BucketSize(str, Enum):
    """Granularity of horizon buckets."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class PlanningZone(str, Enum):
    """Time fence classification of a date inside the horizon."""

    FROZEN = "frozen"  # No changes without approval
    SLUSHY = "slushy"  # Limited changes
    LIQUID = "liquid"  # Free replanning


def add_months(day: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


@dataclass(frozen=True)
class TimeBucket:
    """One ``[start, end)`` slice of a planning horizon."""

    start: date
    end: date
    zone: PlanningZone = PlanningZone.LIQUID

    @property
    def days(self) -> int:
        return (self.end - self.start).days

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end


@dataclass(frozen=True)
class PlanningHorizon:
    """
    Start/end date range with its bucket decomposition.

    Raises:
        ValueError: end not after start, negative zone lengths.
    """

    start_date: date
    end_date: date
    bucket_size: BucketSize = BucketSize.DAY
    frozen_days: int = 14
    slushy_days: int = 14
    liquid_days: int = 62

    def __post_init__(self) -> None:
        if self.end_date <= self.start_date:
            raise ValueError("Horizon end date must be after start date")
        if self.frozen_days < 0 or self.slushy_days < 0 or self.liquid_days < 0:
            raise ValueError("Planning zone lengths cannot be negative")
        if not isinstance(self.bucket_size, BucketSize):
            object.__setattr__(self, "bucket_size", BucketSize(self.bucket_size))

    @property
    def total_days(self) -> int:
        return (self.end_date - self.start_date).days

    @property
    def bucket_count(self) -> int:
        return len(self.buckets())

    def contains(self, day: date) -> bool:
        return self.start_date <= day < self.end_date

    def zone_for(self, day: date) -> PlanningZone:
        offset = (day - self.start_date).days
        if offset < 0 or day >= self.end_date:
            return PlanningZone.LIQUID
        if offset < self.frozen_days:
            return PlanningZone.FROZEN
        if offset < self.frozen_days + self.slushy_days:
            return PlanningZone.SLUSHY
        return PlanningZone.LIQUID

    @property
    def frozen_end_date(self) -> date:
        return self.start_date + timedelta(days=self.frozen_days)

    @property
    def slushy_end_date(self) -> date:
        return self.start_date + timedelta(days=self.frozen_days + self.slushy_days)

    def buckets(self) -> list[TimeBucket]:
        """Ordered, contiguous buckets; the last one is clipped to end_date."""
        result: list[TimeBucket] = []
        current = self.start_date
        while current < self.end_date:
            bucket_end = min(self._next_boundary(current), self.end_date)
            result.append(TimeBucket(current, bucket_end, self.zone_for(current)))
            current = bucket_end
        return result

    def _next_boundary(self, day: date) -> date:
        if self.bucket_size is BucketSize.WEEK:
            return day + timedelta(days=7)
        if self.bucket_size is BucketSize.MONTH:
            return add_months(day, 1)
        return day + timedelta(days=1)

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def for_days(
        cls,
        start: date,
        days: int,
        frozen_days: int = 14,
        slushy_days: int = 14,
        bucket_size: BucketSize = BucketSize.DAY,
    ) -> PlanningHorizon:
        return cls(
            start_date=start,
            end_date=start + timedelta(days=days),
            bucket_size=bucket_size,
            frozen_days=frozen_days,
            slushy_days=slushy_days,
            liquid_days=max(0, days - frozen_days - slushy_days),
        )

    @classmethod
    def for_weeks(
        cls, start: date, weeks: int, frozen_weeks: int = 2, slushy_weeks: int = 2,
    ) -> PlanningHorizon:
        return cls.for_days(
            start,
            weeks * 7,
            frozen_days=frozen_weeks * 7,
            slushy_days=slushy_weeks * 7,
            bucket_size=BucketSize.WEEK,
        )

    @classmethod
    def for_months(
        cls, start: date, months: int, frozen_weeks: int = 2, slushy_weeks: int = 2,
    ) -> PlanningHorizon:
        return cls.for_days(
            start,
            (add_months(start, months) - start).days,
            frozen_days=frozen_weeks * 7,
            slushy_days=slushy_weeks * 7,
            bucket_size=BucketSize.MONTH,
        )

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "bucket_size": self.bucket_size.value,
            "frozen_days": self.frozen_days,
            "slushy_days": self.slushy_days,
            "liquid_days": self.liquid_days,
            "total_days": self.total_days,
        }
