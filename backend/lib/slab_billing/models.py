# backend/lib/slab_billing/models.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple

@dataclass(frozen=True)
class Reading:
    id: str
    voltage: float
    current: float
    power: float  # kW, pre-computed by the meter
    timestamp: datetime

@dataclass(frozen=True)
class PricingSlab:
    min_units: float
    max_units: Optional[float]  # None means unbounded
    price_per_unit: float

    @property
    def is_unbounded(self) -> bool:
        return self.max_units is None

    @property
    def range_label(self) -> str:
        if self.is_unbounded:
            return f"{format_units(self.min_units)}+"
        return f"{format_units(self.min_units)}-{format_units(self.max_units)}"

# An active schedule is always a sorted, contiguous tuple of slabs
PricingSchedule = Tuple[PricingSlab, ...]

@dataclass(frozen=True)
class BreakdownEntry:
    range_label: str
    units: float
    price_per_unit: float
    cost: float

@dataclass(frozen=True)
class BillingResult:
    total_energy: float
    total_cost: float
    breakdown: Tuple[BreakdownEntry, ...] = field(default_factory=tuple)
    readings_count: int = 0

@dataclass(frozen=True)
class HourlyAverage:
    hour: str
    avg_voltage: float
    avg_current: float
    avg_power: float
    samples: int


def format_units(value: float) -> str:
    """
    Render a slab boundary the way the dashboard shows it:
    20.0 -> '20', 2.5 -> '2.5'.
    """
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)

def as_utc(ts: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted to UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)
