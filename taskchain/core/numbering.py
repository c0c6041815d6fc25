"""
NumberingPolicy — How new steps get their numbers

One ordered-step abstraction, three ways numbers are handed out:
- initial plan: 1, 2, 3, ...
- insert after an anchor: anchor + k * increment (1.1, 1.2, ...)
- tail replacement from an anchor: next integers above the anchor

The policy only proposes numbers. Whether they fit (no collisions,
ordering preserved) is decided against the chain; a policy returns None
when it cannot produce a fitting sequence.
"""

from decimal import Decimal, ROUND_FLOOR
from typing import List, Optional

from .step import as_step_number


DEFAULT_INCREMENT = Decimal("0.1")


class NumberingPolicy:
    """
    Decimal step numbering.

    Args:
        increment: Spacing between inserted steps (default 0.1)
        refine: If True, retry inserts with finer increments
            (0.01, 0.001, ...) when the default spacing does not fit
        max_precision: Finest number of decimal places refine may use
    """

    def __init__(
        self,
        increment: Decimal = DEFAULT_INCREMENT,
        refine: bool = False,
        max_precision: int = 4
    ):
        self.increment = as_step_number(increment)
        if self.increment <= 0:
            raise ValueError("increment must be > 0")
        self.refine = refine
        self.max_precision = max_precision

    def initial(self, count: int) -> List[Decimal]:
        """Numbers for a fresh plan: 1..count."""
        return [Decimal(i) for i in range(1, count + 1)]

    def tail(self, anchor: Decimal, count: int) -> List[Decimal]:
        """Numbers for a replaced tail, strictly above the anchor."""
        base = anchor.to_integral_value(rounding=ROUND_FLOOR)
        return [base + i for i in range(1, count + 1)]

    def insert(
        self,
        anchor: Decimal,
        count: int,
        upper: Optional[Decimal] = None
    ) -> Optional[List[Decimal]]:
        """
        Numbers for steps inserted right after the anchor.

        Args:
            anchor: Number of the step to insert after
            count: How many numbers to produce
            upper: Number of the step currently following the anchor,
                if any. Every produced number must stay below it.

        Returns:
            Ascending numbers, or None if no spacing fits
        """
        for increment in self._increments():
            numbers = [anchor + increment * k for k in range(1, count + 1)]
            if upper is None or numbers[-1] < upper:
                return numbers
        return None

    def _increments(self):
        yield self.increment
        if not self.refine:
            return
        step = self.increment
        # Finer spacing, one decimal place at a time
        while -step.as_tuple().exponent < self.max_precision:
            step = step / 10
            yield step
