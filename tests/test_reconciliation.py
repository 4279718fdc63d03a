"""
数量对账引擎测试
"""
from decimal import Decimal

import pytest

from sl_core.ledger.reconciliation import (
    AdjustIn, AdjustOut, Direct, Issue, Quantities, Receive, SetBalance,
    MAX_QUANTITY, build_override_intent, ensure_quantity, reconcile,
)
from sl_core.utils.errors import InsufficientStockError, InvalidQuantityError


class TestEnsureQuantity:

    @pytest.mark.parametrize("value, expected", [(0, 0), (7, 7), (5.0, 5), (Decimal("3"), 3)])
    def test_accepts_whole_numbers(self, value, expected):
        assert ensure_quantity(value, "quantity") == expected

    @pytest.mark.parametrize("value", [None, True, "5", 2.5, float("nan"), float("inf"), [1]])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(InvalidQuantityError) as exc_info:
            ensure_quantity(value, "quantity")
        assert exc_info.value.status == 422
        assert exc_info.value.extra["field"] == "quantity"

    def test_rejects_negative(self):
        with pytest.raises(InvalidQuantityError, match="cannot be negative"):
            ensure_quantity(-1, "balance")

    def test_positive_rejects_zero(self):
        with pytest.raises(InvalidQuantityError, match="must be a positive number"):
            ensure_quantity(0, "quantity", positive=True)

    def test_upper_bound(self):
        assert ensure_quantity(MAX_QUANTITY, "quantity") == MAX_QUANTITY
        with pytest.raises(InvalidQuantityError, match="cannot exceed"):
            ensure_quantity(MAX_QUANTITY + 1, "quantity")
        with pytest.raises(InvalidQuantityError, match="cannot exceed"):
            ensure_quantity(float(10**20), "balance")


class TestReconcile:

    def test_receive_adds_to_in_qty(self):
        result = reconcile(Quantities(20, 5), Receive(10))
        assert result == Quantities(30, 5)
        assert result.balance == 25

    def test_receive_cannot_push_in_qty_past_limit(self):
        with pytest.raises(InvalidQuantityError, match="Resulting quantities cannot exceed"):
            reconcile(Quantities(MAX_QUANTITY - 1, 0), Receive(2))

    def test_issue_adds_to_out_qty(self):
        result = reconcile(Quantities(20, 5), Issue(15))
        assert result == Quantities(20, 20)
        assert result.balance == 0

    def test_issue_over_balance_is_rejected(self):
        with pytest.raises(InsufficientStockError) as exc_info:
            reconcile(Quantities(10, 7), Issue(4))
        assert exc_info.value.available == 3
        assert exc_info.value.requested == 4
        assert exc_info.value.status == 409

    def test_issue_requires_positive_quantity(self):
        with pytest.raises(InvalidQuantityError):
            reconcile(Quantities(10, 0), Issue(0))

    def test_set_balance_keeps_out_qty(self):
        result = reconcile(Quantities(50, 30), SetBalance(5))
        assert result == Quantities(35, 30)

    def test_set_balance_rejects_negative(self):
        with pytest.raises(InvalidQuantityError):
            reconcile(Quantities(50, 30), SetBalance(-1))

    def test_adjust_in_replaces_in_qty(self):
        assert reconcile(Quantities(10, 4), AdjustIn(6)) == Quantities(6, 4)

    def test_adjust_in_below_out_qty_is_rejected(self):
        with pytest.raises(InvalidQuantityError, match="Calculated balance would be negative"):
            reconcile(Quantities(10, 4), AdjustIn(3))

    def test_adjust_out_replaces_out_qty(self):
        assert reconcile(Quantities(10, 4), AdjustOut(9)) == Quantities(10, 9)

    def test_adjust_out_above_in_qty_is_rejected(self):
        with pytest.raises(InvalidQuantityError):
            reconcile(Quantities(10, 4), AdjustOut(11))

    def test_direct_keeps_missing_fields(self):
        assert reconcile(Quantities(10, 4), Direct(out_qty=2)) == Quantities(10, 2)
        assert reconcile(Quantities(10, 4), Direct(in_qty=12)) == Quantities(12, 4)

    def test_direct_balance_wins(self):
        result = reconcile(Quantities(10, 4), Direct(in_qty=100, out_qty=6, balance=3))
        assert result == Quantities(9, 6)
        assert result.balance == 3

    def test_unknown_intent(self):
        with pytest.raises(TypeError):
            reconcile(Quantities(0, 0), object())

    @pytest.mark.parametrize("intent", [
        Receive(1), Issue(1), SetBalance(0), AdjustIn(10), AdjustOut(0), Direct(balance=2),
    ])
    def test_result_satisfies_balance_identity(self, intent):
        result = reconcile(Quantities(10, 5), intent)
        assert result.balance == result.in_qty - result.out_qty
        assert result.balance >= 0


class TestBuildOverrideIntent:

    def test_requires_a_quantity(self):
        with pytest.raises(InvalidQuantityError, match="At least one quantity field"):
            build_override_intent("set_balance")

    def test_typed_intents(self):
        assert build_override_intent("set_balance", balance=4) == SetBalance(4)
        assert build_override_intent("adjust_in", in_qty=4) == AdjustIn(4)
        assert build_override_intent("adjust_out", out_qty=4) == AdjustOut(4)

    def test_typed_intent_missing_field_falls_back_to_direct(self):
        assert build_override_intent("adjust_in", out_qty=2) == Direct(out_qty=2)

    def test_unknown_type_is_direct(self):
        assert build_override_intent("bogus", in_qty=1, balance=2) == Direct(in_qty=1, balance=2)
        assert build_override_intent(None, out_qty=1) == Direct(out_qty=1)
