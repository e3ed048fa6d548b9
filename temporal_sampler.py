# ABOUTME: Evenly spaced timestamps around a center time for weather timelines

from datetime import datetime, timedelta

from models import ensure_utc


DEFAULT_RANGE_HOURS = 3
DEFAULT_INTERVAL_MINUTES = 30


class TemporalSampler:
    """Symmetric sampling window; 3 hours either side at 30 minutes gives 13 points"""

    def generate(
        self,
        center: datetime,
        range_hours: float = DEFAULT_RANGE_HOURS,
        interval_minutes: float = DEFAULT_INTERVAL_MINUTES,
    ) -> list[datetime]:
        if interval_minutes <= 0:
            msg = f'interval_minutes must be positive, got {interval_minutes}'
            raise ValueError(msg)
        if range_hours < 0:
            msg = f'range_hours must not be negative, got {range_hours}'
            raise ValueError(msg)

        count = int(2 * range_hours * 60 // interval_minutes) + 1
        start = ensure_utc(center) - timedelta(hours=range_hours)
        step = timedelta(minutes=interval_minutes)
        return [start + i * step for i in range(count)]
