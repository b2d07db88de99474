# tests/test_io.py
from datetime import datetime, timezone
import pytest
from backend.lib.slab_billing.errors import InvalidRangeError, PayloadError, ValidationError
from backend.lib.slab_billing.estimator import SlabBillingCalculator
from backend.lib.slab_billing.io import (
    billing_result_to_dict,
    format_timestamp,
    parse_reading_payload,
    parse_slabs,
    parse_timestamp,
    reading_from_dict,
    reading_to_dict,
    slab_to_dict,
)
from backend.lib.slab_billing.stores import DEFAULT_PRICING_SLABS
from builders import T0, reading_at

def test_parse_timestamp_variants():
    assert parse_timestamp("2025-11-01T00:00:00Z") == T0
    assert parse_timestamp("2025-11-01T00:00:00.000Z") == T0
    assert parse_timestamp("2025-11-01T05:30:00+05:30") == T0
    naive = parse_timestamp("2025-11-01T00:00:00")
    assert naive == T0 and naive.tzinfo is not None

@pytest.mark.parametrize("bad", [None, "", "yesterday", 12])
def test_parse_timestamp_rejects_garbage(bad):
    with pytest.raises(InvalidRangeError):
        parse_timestamp(bad)

def test_format_timestamp():
    ts = datetime(2025, 11, 1, 12, 30, 5, 123456, tzinfo=timezone.utc)
    assert format_timestamp(ts) == "2025-11-01T12:30:05.123Z"

def test_reading_payload_with_power():
    values = parse_reading_payload({"voltage": "221.4", "current": 2.31, "power": 0.5114})
    assert values == {"voltage": 221.4, "current": 2.31, "power": 0.5114}

def test_reading_payload_derives_power():
    values = parse_reading_payload({"voltage": 220, "current": 10})
    assert values["power"] == pytest.approx(2.2)

@pytest.mark.parametrize("body", [
    None,
    [],
    {"current": 2.0},
    {"voltage": 220.0},
    {"voltage": "high", "current": 2.0},
    {"voltage": True, "current": 2.0},
    {"voltage": 220.0, "current": 2.0, "power": "nan"},
])
def test_reading_payload_rejects_bad_bodies(body):
    with pytest.raises(PayloadError):
        parse_reading_payload(body)

def test_payload_error_is_a_value_error():
    with pytest.raises(ValueError):
        parse_reading_payload({})

def test_parse_slabs_unbounded_markers():
    parsed = parse_slabs([
        {"minUnits": 0, "maxUnits": 20, "pricePerUnit": 3.5},
        {"minUnits": "20", "maxUnits": "", "pricePerUnit": "5"},
    ])
    assert parsed[0].max_units == 20
    assert parsed[1].is_unbounded
    assert parsed[1].price_per_unit == 5.0
    assert parse_slabs([{"minUnits": 0, "maxUnits": None, "pricePerUnit": 1}])[0].is_unbounded

@pytest.mark.parametrize("payload", [
    None,
    {"minUnits": 0},
    [{"minUnits": 0, "maxUnits": None}],
    [{"maxUnits": None, "pricePerUnit": 1.0}],
    [{"minUnits": 0, "maxUnits": "lots", "pricePerUnit": 1.0}],
    ["0-20"],
])
def test_parse_slabs_rejects_malformed(payload):
    with pytest.raises(ValidationError):
        parse_slabs(payload)

def test_slab_to_dict_matches_dashboard_shape():
    assert [slab_to_dict(s) for s in DEFAULT_PRICING_SLABS[-2:]] == [
        {"minUnits": 50, "maxUnits": 100, "pricePerUnit": 8.0},
        {"minUnits": 100, "maxUnits": None, "pricePerUnit": 10.0},
    ]

def test_reading_dict_round_trip():
    r = reading_at(15, 0.5)
    data = reading_to_dict(r)
    assert data["timestamp"] == "2025-11-01T00:15:00.000Z"
    assert reading_from_dict(data) == r

def test_billing_result_to_dict_rounds_totals_only():
    result = SlabBillingCalculator().bill(20.123456, DEFAULT_PRICING_SLABS)
    data = billing_result_to_dict(result)
    assert data["totalEnergy"] == 20.1235
    assert data["totalCost"] == round(70 + 0.123456 * 5.0, 2)
    assert data["readingsCount"] == 0
    assert data["slabBreakdown"][1]["range"] == "20-30"
    assert data["slabBreakdown"][1]["units"] == pytest.approx(0.123456)
