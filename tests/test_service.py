# tests/test_service.py
from datetime import datetime, timedelta
import pytest
from backend.lib.slab_billing.errors import ConfigurationError, InvalidRangeError
from backend.lib.slab_billing.service import BillingService
from backend.lib.slab_billing.stores import PricingSlabStore, ReadingStore
from builders import T0, reading_at

class ExplodingReadingStore(ReadingStore):
    def query(self, start, end):
        raise AssertionError("store must not be queried")

def make_service(readings=(), slab_store=None):
    return BillingService(ReadingStore(readings=readings), slab_store or PricingSlabStore())

def test_calculate_cost_over_window(three_readings):
    service = make_service(three_readings)
    result = service.calculate_cost(T0, T0 + timedelta(hours=1))
    assert result.total_energy == pytest.approx(2.2)
    assert result.total_cost == pytest.approx(2.2 * 3.5)
    assert result.readings_count == 3

def test_window_filters_readings(three_readings):
    service = make_service(three_readings)
    result = service.calculate_cost(T0, T0 + timedelta(minutes=30))
    assert result.readings_count == 2
    assert result.total_energy == pytest.approx(1.05)

def test_empty_window_is_zero_not_error(three_readings):
    service = make_service(three_readings)
    result = service.calculate_cost(T0 + timedelta(days=1), T0 + timedelta(days=2))
    assert result.readings_count == 0
    assert result.total_energy == 0
    assert result.total_cost == 0
    assert result.breakdown == ()

def test_end_before_start_is_rejected_before_querying():
    service = BillingService(ExplodingReadingStore(), PricingSlabStore())
    with pytest.raises(InvalidRangeError):
        service.calculate_cost(T0 + timedelta(hours=1), T0)

def test_uninitialised_schedule_is_configuration_error(three_readings):
    service = make_service(three_readings, slab_store=PricingSlabStore(schedule=None))
    with pytest.raises(ConfigurationError):
        service.calculate_cost(T0, T0 + timedelta(hours=1))

def test_reference_scenario_end_to_end():
    # 45 kW held for one hour -> 45 kWh
    service = make_service([reading_at(0, 45.0), reading_at(60, 45.0)])
    result = service.calculate_cost(T0, T0 + timedelta(hours=1))
    assert result.total_energy == pytest.approx(45.0)
    assert result.total_cost == pytest.approx(217.5)
    assert [e.range_label for e in result.breakdown] == ["0-20", "20-30", "30-50"]

def test_range_preset_ends_now():
    now = T0 + timedelta(hours=2)
    readings = [reading_at(m, 2.0) for m in (30, 60, 90, 120)]
    result = make_service(readings).calculate_cost_for_range("1h", now=now)
    assert result.readings_count == 3
    assert result.total_energy == pytest.approx(2.0)
    assert result.total_cost == pytest.approx(7.0)

def test_unknown_range_preset():
    with pytest.raises(InvalidRangeError, match="Unknown range"):
        make_service().calculate_cost_for_range("3w")

def test_summarize_bills_everything_retained():
    readings = [reading_at(m, 2.0) for m in (30, 60, 90, 120)]
    result = make_service(readings).summarize()
    assert result.readings_count == 4
    assert result.total_energy == pytest.approx(3.0)

def test_realtime_cost_per_hour():
    assert make_service().realtime_cost_per_hour() == 0.0
    service = make_service([reading_at(0, 1.0), reading_at(5, 2.0)])
    assert service.realtime_cost_per_hour() == pytest.approx(7.0)

def test_record_reading_assigns_id_and_archives():
    archived = []
    service = BillingService(ReadingStore(), PricingSlabStore(), archive=archived.append)
    reading = service.record_reading(voltage=230.0, current=2.0, power=0.46, now=T0)
    assert len(reading.id) == 32
    assert reading.timestamp == T0
    assert service.reading_store.latest() == reading
    assert archived == [reading]

def test_record_reading_timestamps_are_utc():
    reading = make_service().record_reading(voltage=230.0, current=2.0, power=0.46)
    assert reading.timestamp.utcoffset() == timedelta(0)
    assert reading.timestamp.microsecond % 1000 == 0

def test_naive_window_is_read_as_utc(three_readings):
    service = make_service(three_readings)
    result = service.calculate_cost(datetime(2025, 11, 1, 0, 0), datetime(2025, 11, 1, 1, 0))
    assert result.readings_count == 3
    assert result.total_energy == pytest.approx(2.2)

def test_naive_now_is_stored_as_utc(three_readings):
    service = make_service(three_readings)
    reading = service.record_reading(voltage=220.0, current=10.0, power=2.2,
                                     now=datetime(2025, 11, 1, 0, 45))
    assert reading.timestamp == T0 + timedelta(minutes=45)
    assert reading.timestamp.utcoffset() == timedelta(0)
    result = service.calculate_cost(T0, T0 + timedelta(hours=1))
    assert result.readings_count == 4
    assert service.calculate_cost_for_range("1h", now=datetime(2025, 11, 1, 1, 0)).readings_count == 4
