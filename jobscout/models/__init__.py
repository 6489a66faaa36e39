"""Database models."""

from jobscout.models.automation import (
    Automation,
    AutomationRun,
    AutomationStatus,
    RunStatus,
)
from jobscout.models.discovery import (
    Company,
    DiscoveredJob,
    DiscoveryStatus,
    JobTitle,
    Location,
)
from jobscout.models.resume import Resume

__all__ = [
    "Automation",
    "AutomationRun",
    "AutomationStatus",
    "Company",
    "DiscoveredJob",
    "DiscoveryStatus",
    "JobTitle",
    "Location",
    "Resume",
    "RunStatus",
]
