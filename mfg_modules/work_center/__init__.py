"""Work center module: production resources, their calendar and alternates."""

from mfg_modules.work_center.models import (
    WorkCenter,
    WorkCenterClosure,
    WorkCenterOvertime,
    WorkCenterType,
)
from mfg_modules.work_center.repository import (
    InMemoryWorkCenterRepository,
    SqlWorkCenterRepository,
    WorkCenterRepository,
)
from mfg_modules.work_center.service import WorkCenterManager

__all__ = [
    "InMemoryWorkCenterRepository",
    "SqlWorkCenterRepository",
    "WorkCenter",
    "WorkCenterClosure",
    "WorkCenterManager",
    "WorkCenterOvertime",
    "WorkCenterRepository",
    "WorkCenterType",
]
