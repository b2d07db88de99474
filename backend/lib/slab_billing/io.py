# backend/lib/slab_billing/io.py
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from .errors import InvalidRangeError, PayloadError, ValidationError
from .estimator import round_cost, round_energy
from .models import BillingResult, HourlyAverage, PricingSlab, Reading, as_utc

def parse_timestamp(text: str) -> datetime:
    """
    Parse an ISO8601 timestamp, e.g. 2025-11-01T00:00:00Z.
    Naive timestamps are taken as UTC; the result is always in UTC.
    """
    if not isinstance(text, str) or not text:
        raise InvalidRangeError(f"Invalid timestamp: {text!r}")
    # Convert timestamp with Z to +00:00 for fromisoformat
    try:
        ts = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidRangeError(f"Invalid timestamp: {text!r}") from exc
    return as_utc(ts)

def format_timestamp(ts: datetime) -> str:
    """UTC ISO8601 with millisecond precision and a Z suffix."""
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def _number(value: Any, name: str, exc: type) -> float:
    # bool is an int subclass; a JSON true is never a measurement
    if isinstance(value, bool):
        raise exc(f"{name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError) as err:
        raise exc(f"{name} must be a number") from err
    if not math.isfinite(number):
        raise exc(f"{name} must be finite")
    return number

def parse_reading_payload(data: Optional[Dict[str, Any]]) -> Dict[str, float]:
    """
    Validate a posted reading: {"voltage": 221.4, "current": 2.31, "power": 0.511}.
    power is optional and falls back to voltage * current / 1000 (kW).
    """
    if not isinstance(data, dict):
        raise PayloadError("Reading body must be a JSON object")
    for name in ("voltage", "current"):
        if data.get(name) is None:
            raise PayloadError(f"Missing field: {name}")
    voltage = _number(data["voltage"], "voltage", PayloadError)
    current = _number(data["current"], "current", PayloadError)
    if data.get("power") is None:
        power = voltage * current / 1000
    else:
        power = _number(data["power"], "power", PayloadError)
    return {"voltage": voltage, "current": current, "power": power}

def parse_slab(data: Any) -> PricingSlab:
    """
    {"minUnits": 0, "maxUnits": 20, "pricePerUnit": 3.5}
    maxUnits null (or an empty form field) means unbounded.
    """
    if not isinstance(data, dict):
        raise ValidationError("Each slab must be an object with minUnits, maxUnits and pricePerUnit")
    for name in ("minUnits", "pricePerUnit"):
        if data.get(name) is None or data.get(name) == "":
            raise ValidationError(f"Missing field in slab: {name}")
    max_units = data.get("maxUnits")
    return PricingSlab(
        min_units=_number(data["minUnits"], "minUnits", ValidationError),
        max_units=None if max_units is None or max_units == "" else _number(max_units, "maxUnits", ValidationError),
        price_per_unit=_number(data["pricePerUnit"], "pricePerUnit", ValidationError),
    )

def parse_slabs(data: Any) -> List[PricingSlab]:
    if not isinstance(data, list):
        raise ValidationError("slabs must be a list")
    return [parse_slab(item) for item in data]

def reading_to_dict(r: Reading) -> Dict[str, Any]:
    return {
        "id": r.id,
        "voltage": r.voltage,
        "current": r.current,
        "power": r.power,
        "timestamp": format_timestamp(r.timestamp),
    }

def reading_from_dict(data: Dict[str, Any]) -> Reading:
    return Reading(
        id=str(data["id"]),
        voltage=float(data["voltage"]),
        current=float(data["current"]),
        power=float(data["power"]),
        timestamp=parse_timestamp(data["timestamp"]),
    )

def _plain_number(value: float):
    # 20.0 -> 20 so the JSON matches what the dashboard posted
    return int(value) if float(value).is_integer() else value

def slab_to_dict(slab: PricingSlab) -> Dict[str, Any]:
    return {
        "minUnits": _plain_number(slab.min_units),
        "maxUnits": None if slab.is_unbounded else _plain_number(slab.max_units),
        "pricePerUnit": slab.price_per_unit,
    }

def billing_result_to_dict(result: BillingResult) -> Dict[str, Any]:
    """Wire shape of a cost calculation; totals are rounded for display here only."""
    return {
        "totalEnergy": round_energy(result.total_energy),
        "totalCost": round_cost(result.total_cost),
        "slabBreakdown": [
            {
                "range": e.range_label,
                "units": e.units,
                "pricePerUnit": e.price_per_unit,
                "cost": e.cost,
            }
            for e in result.breakdown
        ],
        "readingsCount": result.readings_count,
    }

def hourly_average_to_dict(h: HourlyAverage) -> Dict[str, Any]:
    return {
        "hour": h.hour,
        "avgVoltage": h.avg_voltage,
        "avgCurrent": h.avg_current,
        "avgPower": h.avg_power,
        "samples": h.samples,
    }
