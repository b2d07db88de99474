# backend/lib/slab_billing/stores.py
import logging
import threading
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional
from .models import PricingSchedule, PricingSlab, Reading, as_utc
from .validator import SlabConfigValidator

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100

# Default slab-based tariff, as shipped with the dashboard
DEFAULT_PRICING_SLABS = (
    PricingSlab(min_units=0, max_units=20, price_per_unit=3.5),
    PricingSlab(min_units=20, max_units=30, price_per_unit=5.0),
    PricingSlab(min_units=30, max_units=50, price_per_unit=6.5),
    PricingSlab(min_units=50, max_units=100, price_per_unit=8.0),
    PricingSlab(min_units=100, max_units=None, price_per_unit=10.0),
)


class ReadingStore:
    """
    Bounded in-memory history of readings.

    Once more than `capacity` readings have been appended the oldest ones are
    dropped, so queries only ever see the retained tail of the history.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, readings: Optional[Iterable[Reading]] = None):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._readings = deque(maxlen=capacity)
        self._lock = threading.RLock()
        for r in readings or ():
            self.append(r)

    def __len__(self) -> int:
        with self._lock:
            return len(self._readings)

    def append(self, reading: Reading) -> None:
        if reading.timestamp.tzinfo is None:
            reading = replace(reading, timestamp=as_utc(reading.timestamp))
        with self._lock:
            if len(self._readings) == self.capacity:
                logger.debug("Reading store full (%d); evicting %s", self.capacity, self._readings[0].id)
            self._readings.append(reading)

    def all(self) -> List[Reading]:
        """Snapshot of every retained reading, ascending by timestamp."""
        with self._lock:
            snapshot = list(self._readings)
        return sorted(snapshot, key=lambda r: r.timestamp)

    def query(self, start: datetime, end: datetime) -> List[Reading]:
        """Readings with start <= timestamp <= end, ascending by timestamp."""
        start, end = as_utc(start), as_utc(end)
        return [r for r in self.all() if start <= r.timestamp <= end]

    def recent(self, limit: int = DEFAULT_CAPACITY) -> List[Reading]:
        """Up to `limit` most recent readings, oldest first."""
        if limit <= 0:
            return []
        return self.all()[-limit:]

    def latest(self) -> Optional[Reading]:
        with self._lock:
            if not self._readings:
                return None
            # newest append wins a timestamp tie
            return max(reversed(self._readings), key=lambda r: r.timestamp)


class PricingSlabStore:
    """
    Holds the active pricing schedule.

    The schedule is only ever replaced wholesale, and only with a candidate
    that passed SlabConfigValidator; a rejected update leaves the previous
    schedule in place.
    """

    def __init__(
        self,
        schedule: Optional[Iterable[PricingSlab]] = DEFAULT_PRICING_SLABS,
        validator: Optional[SlabConfigValidator] = None,
    ):
        self.validator = validator or SlabConfigValidator()
        self._lock = threading.RLock()
        # None leaves the store uninitialised; billing against it fails
        self._schedule: PricingSchedule = () if schedule is None else self.validator.validate(schedule)

    def current(self) -> PricingSchedule:
        with self._lock:
            return self._schedule

    def update(self, candidate: Iterable[PricingSlab]) -> PricingSchedule:
        """
        Validate `candidate` and make it the active schedule.
        Raises ValidationError without touching the current schedule.
        """
        schedule = self.validator.validate(candidate)
        with self._lock:
            self._schedule = schedule
        logger.info("Pricing schedule replaced: %s", ", ".join(s.range_label for s in schedule))
        return schedule
