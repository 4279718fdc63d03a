"""
库存项服务测试（SQLite）
"""
import asyncio

import pytest

from sl_core.ledger.derived import STATUS_IN_STOCK, STATUS_LOW_IN_STOCK, STATUS_OUT_OF_STOCK
from sl_core.ledger.reconciliation import MAX_QUANTITY
from sl_core.utils.errors import (
    InsufficientStockError, InvalidQuantityError, ItemNotFoundError, ValidationError
)


class TestCreate:

    async def test_create_sets_in_qty_to_balance(self, item_service, sample_item_data):
        result = await item_service.create_item(sample_item_data)
        item = result.data

        assert item["item_no"] > 0
        assert (item["in_qty"], item["out_qty"], item["balance"]) == (20, 0, 20)
        assert item["item_status"] == STATUS_IN_STOCK
        assert item["price_per_unit"] == "0.25"
        assert item["cost"] == "5.00"
        assert item["created_at"] is not None

    async def test_create_defaults(self, item_service):
        item = (await item_service.create_item({"item_name": "Tape"})).data

        assert item["brand"] == ""
        assert item["supplier"] == ""
        assert item["min_stock"] == 0
        assert item["balance"] == 0
        assert item["item_status"] == STATUS_OUT_OF_STOCK

    @pytest.mark.parametrize("payload", [{}, {"item_name": ""}, {"item_name": "   "}])
    async def test_create_requires_name(self, item_service, payload):
        with pytest.raises(ValidationError) as exc_info:
            await item_service.create_item(payload)
        assert exc_info.value.code == "ITEM_NAME_REQUIRED"

    async def test_create_rejects_negative_balance(self, item_service):
        with pytest.raises(InvalidQuantityError):
            await item_service.create_item({"item_name": "Tape", "balance": -3})

    async def test_create_rejects_negative_price(self, item_service):
        with pytest.raises(ValidationError) as exc_info:
            await item_service.create_item({"item_name": "Tape", "price_per_unit": "-1"})
        assert exc_info.value.code == "INVALID_PRICE"

    async def test_create_rejects_oversized_balance(self, item_service):
        with pytest.raises(InvalidQuantityError) as exc_info:
            await item_service.create_item({"item_name": "Huge", "balance": 10**20})
        assert exc_info.value.status == 422
        assert exc_info.value.extra["field"] == "balance"

    async def test_item_numbers_are_not_reused(self, item_service, make_item):
        first = await make_item("A")
        await item_service.delete_item(first["item_no"])
        second = await make_item("B")
        assert second["item_no"] > first["item_no"]


class TestUpdate:

    async def test_update_recomputes_in_qty_from_balance(self, item_service, make_item):
        item = await make_item("Glue", balance=20)
        await item_service.stock_out(item["item_no"], 5)

        result = await item_service.update_item(item["item_no"], {
            "item_name": "Glue Stick",
            "balance": 8,
            "in_qty": 999,
            "min_stock": 10,
        })
        updated = result.data

        assert updated["item_name"] == "Glue Stick"
        assert (updated["in_qty"], updated["out_qty"], updated["balance"]) == (13, 5, 8)
        assert updated["item_status"] == STATUS_LOW_IN_STOCK
        assert updated["deficit"] == 2

    async def test_update_missing_item(self, item_service):
        with pytest.raises(ItemNotFoundError):
            await item_service.update_item(404, {"item_name": "Ghost", "balance": 1})


class TestStockMutations:

    async def test_insert_stock(self, item_service, make_item):
        item = await make_item("Bolt", balance=20)
        await item_service.stock_out(item["item_no"], 5)

        result = await item_service.insert_stock(item["item_no"], 10)

        assert (result.data["in_qty"], result.data["balance"]) == (30, 25)
        assert result.metadata["stock_change"] == {
            "previous_balance": 15,
            "added_quantity": 10,
            "new_balance": 25,
        }

    @pytest.mark.parametrize("quantity", [0, -2, "3", None])
    async def test_insert_stock_rejects_bad_quantity(self, item_service, make_item, quantity):
        item = await make_item("Bolt", balance=1)
        with pytest.raises(InvalidQuantityError):
            await item_service.insert_stock(item["item_no"], quantity)

    async def test_stock_out(self, item_service, make_item):
        item = await make_item("Nut", balance=10, min_stock=5)

        result = await item_service.stock_out(item["item_no"], 7, notes="job 12", out_by="kim")

        assert (result.data["out_qty"], result.data["balance"]) == (7, 3)
        assert result.data["item_status"] == STATUS_LOW_IN_STOCK
        transaction = result.metadata["transaction"]
        assert transaction["quantity_out"] == 7
        assert transaction["previous_balance"] == 10
        assert transaction["new_balance"] == 3
        assert transaction["out_by"] == "kim"

    async def test_stock_out_over_balance_leaves_item_unchanged(self, item_service, make_item):
        item = await make_item("Nut", balance=3)

        with pytest.raises(InsufficientStockError) as exc_info:
            await item_service.stock_out(item["item_no"], 4)

        assert exc_info.value.extra == {"available": 3, "requested": 4, "item_no": item["item_no"]}
        reread = (await item_service.get_item(item["item_no"])).data
        assert (reread["in_qty"], reread["out_qty"]) == (3, 0)

    async def test_insert_stock_cannot_overflow(self, item_service, make_item):
        item = await make_item("Bolt", balance=MAX_QUANTITY - 1)

        with pytest.raises(InvalidQuantityError):
            await item_service.insert_stock(item["item_no"], 5)

        reread = (await item_service.get_item(item["item_no"])).data
        assert reread["in_qty"] == MAX_QUANTITY - 1

    @pytest.mark.parametrize("mutation", ["set_stock", "override"])
    async def test_oversized_quantities_are_rejected(self, item_service, make_item, mutation):
        item = await make_item("Bolt", balance=1)
        with pytest.raises(InvalidQuantityError):
            if mutation == "set_stock":
                await item_service.set_stock(item["item_no"], 10**20)
            else:
                await item_service.override_quantities(item["item_no"], in_qty=10**20)

    async def test_set_stock_keeps_out_qty(self, item_service, make_item):
        item = await make_item("Washer", balance=50)
        await item_service.stock_out(item["item_no"], 30)

        result = await item_service.set_stock(item["item_no"], 5, adjustment_reason="count")

        assert (result.data["in_qty"], result.data["out_qty"], result.data["balance"]) == (35, 30, 5)
        assert result.metadata["stock_change"] == {
            "previous_balance": 20,
            "new_balance": 5,
            "adjustment_reason": "count",
        }

    async def test_set_stock_rejects_negative(self, item_service, make_item):
        item = await make_item("Washer", balance=5)
        with pytest.raises(InvalidQuantityError):
            await item_service.set_stock(item["item_no"], -1)

    async def test_mutating_missing_item(self, item_service):
        with pytest.raises(ItemNotFoundError) as exc_info:
            await item_service.insert_stock(999, 1)
        assert exc_info.value.status == 404
        assert exc_info.value.extra["item_no"] == 999


class TestOverride:

    async def test_adjust_out(self, item_service, make_item):
        item = await make_item("Pipe", balance=10)

        result = await item_service.override_quantities(
            item["item_no"], out_qty=4, update_type="adjust_out", updated_by="ops"
        )

        assert (result.data["in_qty"], result.data["out_qty"]) == (10, 4)
        changes = result.metadata["changes"]
        assert changes["previous"] == {"in_qty": 10, "out_qty": 0, "balance": 10}
        assert changes["updated"] == {"in_qty": 10, "out_qty": 4, "balance": 6}
        assert changes["update_type"] == "adjust_out"
        assert changes["updated_by"] == "ops"

    async def test_direct_override_defaults_to_manual(self, item_service, make_item):
        item = await make_item("Pipe", balance=10)

        result = await item_service.override_quantities(item["item_no"], in_qty=12, out_qty=2)

        assert result.data["balance"] == 10
        assert result.metadata["changes"]["update_type"] == "manual"

    async def test_override_rejecting_negative_balance(self, item_service, make_item):
        item = await make_item("Pipe", balance=10)

        with pytest.raises(InvalidQuantityError):
            await item_service.override_quantities(item["item_no"], in_qty=5, out_qty=6)

        reread = (await item_service.get_item(item["item_no"])).data
        assert (reread["in_qty"], reread["out_qty"]) == (10, 0)

    async def test_override_requires_a_quantity(self, item_service, make_item):
        item = await make_item("Pipe", balance=10)
        with pytest.raises(InvalidQuantityError):
            await item_service.override_quantities(item["item_no"], update_type="set_balance")


class TestDelete:

    async def test_delete_returns_snapshot(self, item_service, make_item):
        item = await make_item("Clamp", balance=4)

        result = await item_service.delete_item(item["item_no"])

        assert result.data["item_name"] == "Clamp"
        assert result.data["balance"] == 4
        with pytest.raises(ItemNotFoundError):
            await item_service.get_item(item["item_no"])

    async def test_delete_missing_item(self, item_service):
        with pytest.raises(ItemNotFoundError):
            await item_service.delete_item(12345)

    async def test_invalid_item_no(self, item_service):
        with pytest.raises(ValidationError) as exc_info:
            await item_service.get_item(0)
        assert exc_info.value.code == "INVALID_ITEM_NO"


async def test_reread_matches_each_mutation(item_service, make_item):
    item = await make_item("Sequence", balance=10)
    item_no = item["item_no"]

    steps = [
        (lambda: item_service.insert_stock(item_no, 5), (15, 0)),
        (lambda: item_service.stock_out(item_no, 3), (15, 3)),
        (lambda: item_service.set_stock(item_no, 20), (23, 3)),
        (lambda: item_service.override_quantities(item_no, in_qty=30, update_type="adjust_in"), (30, 3)),
    ]
    for mutate, expected in steps:
        returned = (await mutate()).data
        reread = (await item_service.get_item(item_no)).data
        assert (returned["in_qty"], returned["out_qty"]) == expected
        assert (reread["in_qty"], reread["out_qty"]) == expected
        assert reread["balance"] == reread["in_qty"] - reread["out_qty"] >= 0


async def test_concurrent_stock_out_is_serialised(item_service, make_item):
    item = await make_item("Contended", balance=5)
    item_no = item["item_no"]

    results = await asyncio.gather(
        item_service.stock_out(item_no, 5),
        item_service.stock_out(item_no, 5),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStockError)

    reread = (await item_service.get_item(item_no)).data
    assert (reread["in_qty"], reread["out_qty"], reread["balance"]) == (5, 5, 0)
