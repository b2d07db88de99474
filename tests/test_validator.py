# tests/test_validator.py
import pytest
from backend.lib.slab_billing.errors import ValidationError
from backend.lib.slab_billing.stores import DEFAULT_PRICING_SLABS
from backend.lib.slab_billing.validator import SlabConfigValidator
from builders import slabs

validator = SlabConfigValidator()

def test_valid_schedule_is_returned_unchanged():
    assert validator.validate(DEFAULT_PRICING_SLABS) == DEFAULT_PRICING_SLABS

def test_validate_is_idempotent():
    once = validator.validate(slabs((0, 10, 1.0), (10, 40, 2.0), (40, None, 3.0)))
    assert validator.validate(once) == once

def test_candidate_is_sorted_by_min_units():
    schedule = validator.validate(slabs((20, None, 5.0), (0, 20, 3.5)))
    assert [s.min_units for s in schedule] == [0, 20]
    assert isinstance(schedule, tuple)

def test_gap_between_slabs_is_rejected():
    with pytest.raises(ValidationError, match="contiguous"):
        validator.validate(slabs((0, 20, 3.5), (25, None, 5.0)))

def test_overlap_between_slabs_is_rejected():
    with pytest.raises(ValidationError, match="contiguous"):
        validator.validate(slabs((0, 20, 3.5), (10, None, 5.0)))

def test_empty_schedule_is_rejected():
    with pytest.raises(ValidationError, match="at least one slab"):
        validator.validate([])

def test_first_slab_must_start_at_zero():
    with pytest.raises(ValidationError, match="start at 0"):
        validator.validate(slabs((5, None, 1.0)))

def test_missing_unbounded_tail_is_rejected():
    with pytest.raises(ValidationError, match="must be unbounded"):
        validator.validate(slabs((0, 20, 1.0), (20, 30, 2.0)))

def test_only_last_slab_may_be_unbounded():
    with pytest.raises(ValidationError, match="Only the last slab"):
        validator.validate(slabs((0, None, 1.0), (20, None, 2.0)))

def test_negative_price_is_rejected():
    with pytest.raises(ValidationError, match="Price per unit"):
        validator.validate(slabs((0, 20, -1.0), (20, None, 2.0)))

def test_empty_width_slab_is_rejected():
    with pytest.raises(ValidationError, match="greater than minUnits"):
        validator.validate(slabs((0, 0, 1.0), (0, None, 2.0)))

def test_first_violation_is_reported():
    # both a gap and a negative price: contiguity is checked first
    with pytest.raises(ValidationError, match="contiguous"):
        validator.validate(slabs((0, 20, -1.0), (25, None, 2.0)))

def test_decreasing_prices_are_allowed():
    schedule = validator.validate(slabs((0, 50, 8.0), (50, None, 4.0)))
    assert schedule[1].price_per_unit == 4.0

def test_single_unbounded_slab_is_a_flat_tariff():
    schedule = validator.validate(slabs((0, None, 0.2)))
    assert len(schedule) == 1
