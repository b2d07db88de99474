# backend/lib/slab_billing/estimator.py
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Sequence
from .errors import ConfigurationError
from .models import BillingResult, BreakdownEntry, PricingSlab

def _quantize(value: float, places: str) -> float:
    # ROUND_HALF_UP on the decimal text, not on the binary float
    return float(Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP))

def round_energy(kwh: float) -> float:
    """Display rounding for energy: 4 decimal places."""
    return _quantize(kwh, '0.0001')

def round_cost(cost: float) -> float:
    """Display rounding for money: 2 decimal places."""
    return _quantize(cost, '0.01')


class SlabBillingCalculator:
    """
    Distributes an energy quantity over an ordered pricing schedule.

    The schedule is trusted: it has already been through SlabConfigValidator
    on its way into PricingSlabStore, so only emptiness is checked here.
    """

    def bill(self, energy: float, schedule: Sequence[PricingSlab]) -> BillingResult:
        """
        energy: kWh to bill, >= 0
        schedule: slabs sorted ascending, contiguous, unbounded tail
        returns BillingResult with readings_count left at 0
        """
        if not schedule:
            raise ConfigurationError("No pricing slabs configured; cannot calculate cost")

        total_cost = 0.0
        remaining = energy
        breakdown: List[BreakdownEntry] = []

        for slab in schedule:
            if remaining <= 0:
                break
            capacity = remaining if slab.is_unbounded else slab.max_units - slab.min_units
            units = min(remaining, capacity)
            if units > 0:
                cost = units * slab.price_per_unit
                breakdown.append(BreakdownEntry(
                    range_label=slab.range_label,
                    units=units,
                    price_per_unit=slab.price_per_unit,
                    cost=cost,
                ))
                total_cost += cost
            remaining -= units

        return BillingResult(
            total_energy=energy,
            total_cost=total_cost,
            breakdown=tuple(breakdown),
        )

    def estimate_cost_per_hour(self, power_kw: float, schedule: Sequence[PricingSlab]) -> float:
        """
        Instantaneous cost rate for the dashboard's Cost/Hour card.

        Always priced at the first slab, whatever the cumulative usage so far.
        That is how the dashboard has always computed it, and it understates
        the rate once consumption has moved into a higher slab.
        """
        if not schedule:
            raise ConfigurationError("No pricing slabs configured; cannot estimate cost")
        # TODO: pick the slab from cumulative usage in the current billing period.
        return power_kw * schedule[0].price_per_unit
