"""
Tests for NumberingPolicy — how new steps are numbered

Tests verify:
- Initial plans are numbered 1..N
- Inserts use anchor + k/10
- Inserts that cannot fit below the next step are refused (or refined)
- Replaced tails are numbered strictly above the anchor
"""

from decimal import Decimal

import pytest

from taskchain.core.numbering import NumberingPolicy


D = Decimal


class TestInitialNumbers:

    def test_one_to_n(self):
        assert NumberingPolicy().initial(3) == [D(1), D(2), D(3)]

    def test_empty(self):
        assert NumberingPolicy().initial(0) == []


class TestInsertNumbers:

    def test_tenths_after_anchor(self):
        assert NumberingPolicy().insert(D(1), 2, upper=D(2)) == [D("1.1"), D("1.2")]

    def test_no_upper_bound(self):
        """After the last step anything fits."""
        numbers = NumberingPolicy().insert(D(3), 12)
        assert numbers[0] == D("3.1")
        assert numbers[-1] == D("4.2")

    def test_refuses_when_reaching_next_step(self):
        """Ten steps after 1 would produce 2.0, which is taken."""
        assert NumberingPolicy().insert(D(1), 10, upper=D(2)) is None

    def test_refuses_between_close_neighbours(self):
        assert NumberingPolicy().insert(D("1.1"), 1, upper=D("1.2")) is None

    def test_refine_uses_finer_spacing(self):
        policy = NumberingPolicy(refine=True)
        assert policy.insert(D("1.1"), 2, upper=D("1.2")) == [D("1.11"), D("1.12")]

    def test_refine_stops_at_max_precision(self):
        policy = NumberingPolicy(refine=True, max_precision=2)
        # 0.01 spacing cannot fit 20 steps between 1.1 and 1.2
        assert policy.insert(D("1.1"), 20, upper=D("1.2")) is None

    def test_custom_increment(self):
        policy = NumberingPolicy(increment=D("0.01"))
        assert policy.insert(D(1), 2, upper=D(2)) == [D("1.01"), D("1.02")]

    def test_rejects_non_positive_increment(self):
        with pytest.raises(ValueError):
            NumberingPolicy(increment=D(0))


class TestTailNumbers:

    def test_strictly_above_anchor(self):
        assert NumberingPolicy().tail(D(2), 2) == [D(3), D(4)]

    def test_fractional_anchor(self):
        """From 1.1 the tail continues at the next whole numbers."""
        assert NumberingPolicy().tail(D("1.1"), 2) == [D(2), D(3)]
