# backend/lib/slab_billing/validator.py
from typing import Iterable
from .errors import ValidationError
from .models import PricingSchedule, PricingSlab

class SlabConfigValidator:
    """
    Normalises and checks a candidate list of slabs before it may become the
    active pricing schedule.
    """

    def validate(self, candidate: Iterable[PricingSlab]) -> PricingSchedule:
        """
        Sorts the candidate by min_units and returns it as a tuple.
        Raises ValidationError naming the first invariant that does not hold.
        """
        slabs = sorted(candidate, key=lambda s: s.min_units)

        if not slabs:
            raise ValidationError("Pricing schedule must contain at least one slab")

        if slabs[0].min_units != 0:
            raise ValidationError(
                f"First slab must start at 0 units, got {slabs[0].min_units}"
            )

        unbounded = [i for i, s in enumerate(slabs) if s.is_unbounded]
        if not unbounded:
            raise ValidationError("Last slab must be unbounded (maxUnits = null)")
        if len(unbounded) > 1 or unbounded[0] != len(slabs) - 1:
            raise ValidationError("Only the last slab may be unbounded")

        for prev, curr in zip(slabs, slabs[1:]):
            if prev.max_units != curr.min_units:
                raise ValidationError(
                    f"Slabs must be contiguous: slab {prev.range_label} ends at "
                    f"{prev.max_units} but the next slab starts at {curr.min_units}"
                )

        for slab in slabs:
            if slab.price_per_unit < 0:
                raise ValidationError(
                    f"Price per unit must be >= 0 (slab {slab.range_label})"
                )

        for slab in slabs[:-1]:
            if slab.max_units <= slab.min_units:
                raise ValidationError(
                    f"maxUnits must be greater than minUnits (slab {slab.range_label})"
                )

        return tuple(slabs)
