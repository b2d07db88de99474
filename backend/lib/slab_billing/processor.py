# backend/lib/slab_billing/processor.py
from collections import OrderedDict
from typing import List, Sequence
from .models import HourlyAverage, Reading

SECONDS_PER_HOUR = 3600.0

class EnergyIntegrator:
    """
    Turns a power time series (kW samples) into energy (kWh) with the
    trapezoidal rule.
    """

    def integrate(self, readings: Sequence[Reading]) -> float:
        """
        readings must be ordered by timestamp ascending (the stores guarantee
        this). Fewer than two readings integrate to 0.0; two readings sharing
        a timestamp add nothing for that interval.
        """
        energy = 0.0
        for i in range(1, len(readings)):
            prev, curr = readings[i-1], readings[i]
            dt_hours = (curr.timestamp - prev.timestamp).total_seconds() / SECONDS_PER_HOUR
            avg_power = (prev.power + curr.power) / 2
            energy += avg_power * dt_hours
        return energy


class ReadingAnalyzer:
    def __init__(self, readings: List[Reading]):
        # Ensure readings are sorted by timestamp
        self.readings = sorted(readings, key=lambda r: r.timestamp)

    def hourly_averages(self, limit: int = 12) -> List[HourlyAverage]:
        """
        Groups readings by UTC hour of day ('H:00') and averages voltage,
        current and power per group. Groups keep first-seen order and only
        the last `limit` groups are returned.
        """
        grouped = OrderedDict()
        for r in self.readings:
            key = f"{r.timestamp.hour}:00"
            grouped.setdefault(key, []).append(r)

        averages = []
        for hour, group in grouped.items():
            n = len(group)
            averages.append(HourlyAverage(
                hour=hour,
                avg_voltage=sum(r.voltage for r in group) / n,
                avg_current=sum(r.current for r in group) / n,
                avg_power=sum(r.power for r in group) / n,
                samples=n,
            ))
        if limit <= 0:
            return []
        return averages[-limit:]
