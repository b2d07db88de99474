# backend/run_local.py
import json
import sys
from pathlib import Path
from backend.lib.slab_billing.estimator import SlabBillingCalculator, round_cost, round_energy
from backend.lib.slab_billing.io import parse_timestamp
from backend.lib.slab_billing.models import Reading
from backend.lib.slab_billing.processor import EnergyIntegrator
from backend.lib.slab_billing.stores import DEFAULT_PRICING_SLABS

def load_readings(path):
    """
    JSON list of readings, e.g.
    [{"timestamp": "2025-11-01T00:00:00Z", "voltage": 220.0, "current": 9.1, "power": 2.0}, ...]
    """
    rows = json.loads(Path(path).read_text())
    readings = [
        Reading(
            id=str(row.get("id", i)),
            voltage=float(row.get("voltage", 0.0)),
            current=float(row.get("current", 0.0)),
            power=float(row["power"]),
            timestamp=parse_timestamp(row["timestamp"]),
        )
        for i, row in enumerate(rows)
    ]
    return sorted(readings, key=lambda r: r.timestamp)

def main(json_path):
    readings = load_readings(json_path)
    energy = EnergyIntegrator().integrate(readings)
    result = SlabBillingCalculator().bill(energy, DEFAULT_PRICING_SLABS)
    print(f"Parsed {len(readings)} readings: {round_energy(energy)} kWh")
    for e in result.breakdown:
        print(f" - {e.range_label} units: {e.units:.4f} @ {e.price_per_unit} = {e.cost:.2f}")
    print(f"Total cost: {round_cost(result.total_cost):.2f}")
    return result

if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else "tests/sample_readings.json"
    main(path)
