# backend/lib/slab_billing/service.py
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from .errors import InvalidRangeError
from .estimator import SlabBillingCalculator
from .models import BillingResult, Reading, as_utc
from .processor import EnergyIntegrator
from .stores import PricingSlabStore, ReadingStore

logger = logging.getLogger(__name__)

# Windows offered by the dashboard's cost calculator
RANGE_PRESETS = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "12h": timedelta(hours=12),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
}

def utc_now() -> datetime:
    now = datetime.now(timezone.utc)
    # millisecond resolution, same as the timestamps clients send back
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class BillingService:
    """
    Ties the stores to the billing engine:
    window -> readings -> energy (kWh) -> slab-priced cost.
    """

    def __init__(
        self,
        reading_store: ReadingStore,
        slab_store: PricingSlabStore,
        integrator: Optional[EnergyIntegrator] = None,
        calculator: Optional[SlabBillingCalculator] = None,
        archive: Optional[Callable[[Reading], object]] = None,
    ):
        self.reading_store = reading_store
        self.slab_store = slab_store
        self.integrator = integrator or EnergyIntegrator()
        self.calculator = calculator or SlabBillingCalculator()
        # optional sink for every recorded reading (e.g. DynamoDB)
        self.archive = archive

    def record_reading(self, voltage: float, current: float, power: float,
                       now: Optional[datetime] = None) -> Reading:
        reading = Reading(
            id=uuid.uuid4().hex,
            voltage=voltage,
            current=current,
            power=power,
            timestamp=as_utc(now) if now else utc_now(),
        )
        self.reading_store.append(reading)
        if self.archive is not None:
            self.archive(reading)
        return reading

    def calculate_cost(self, start: datetime, end: datetime) -> BillingResult:
        start, end = as_utc(start), as_utc(end)
        if end < start:
            raise InvalidRangeError(
                f"endDate ({end.isoformat()}) is before startDate ({start.isoformat()})"
            )
        readings = self.reading_store.query(start, end)
        return self._bill(readings)

    def calculate_cost_for_range(self, preset: str, now: Optional[datetime] = None) -> BillingResult:
        """Cost over one of the RANGE_PRESETS windows ending at `now`."""
        if preset not in RANGE_PRESETS:
            raise InvalidRangeError(
                f"Unknown range '{preset}'; expected one of {', '.join(RANGE_PRESETS)}"
            )
        end = as_utc(now) if now else utc_now()
        return self.calculate_cost(end - RANGE_PRESETS[preset], end)

    def summarize(self) -> BillingResult:
        """Cost of everything the reading store still holds."""
        return self._bill(self.reading_store.all())

    def realtime_cost_per_hour(self) -> float:
        latest = self.reading_store.latest()
        if latest is None:
            return 0.0
        return self.calculator.estimate_cost_per_hour(latest.power, self.slab_store.current())

    def _bill(self, readings) -> BillingResult:
        schedule = self.slab_store.current()
        energy = self.integrator.integrate(readings)
        result = self.calculator.bill(energy, schedule)
        logger.debug("Billed %.4f kWh over %d readings: %.2f", energy, len(readings), result.total_cost)
        return replace(result, readings_count=len(readings))
