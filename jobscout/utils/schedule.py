"""Schedule arithmetic for automations."""

from datetime import datetime, timedelta

from jobscout.core.storage import utc_now


def calculate_next_run_at(schedule_hour: int, now: datetime | None = None) -> datetime:
    """Next occurrence of ``schedule_hour:00`` strictly after ``now``.

    Args:
        schedule_hour: Preferred run hour, 0-23.
        now: Reference time as naive UTC. Defaults to the current time.

    Returns:
        Today at the scheduled hour if that is still ahead, otherwise the
        same hour tomorrow.
    """
    if not 0 <= schedule_hour <= 23:
        raise ValueError(f"schedule_hour must be within 0-23, got {schedule_hour}")

    now = now or utc_now()
    candidate = now.replace(hour=schedule_hour, minute=0, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def is_automation_due(next_run_at: datetime | None, now: datetime | None = None) -> bool:
    """An automation without a next run time is never due."""
    if next_run_at is None:
        return False
    return next_run_at <= (now or utc_now())
