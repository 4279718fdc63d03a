"""
出库结算测试：整批成功或整批回滚
"""
import pytest

from sl_core.services import CheckoutService, ItemService
from sl_core.utils.errors import (
    InsufficientStockError, InvalidQuantityError, ItemNotFoundError, StoreError, ValidationError
)


async def _quantities(item_service, item_no):
    item = (await item_service.get_item(item_no)).data
    return item["in_qty"], item["out_qty"]


async def test_checkout_commits_every_line(checkout_service, item_service, make_item):
    a = await make_item("A", balance=5)
    b = await make_item("B", balance=5)

    result = await checkout_service.checkout(
        [{"item_no": a["item_no"], "quantity": 2}, {"item_no": b["item_no"], "quantity": 5}],
        checkout_by="sam",
        notes="job 7"
    )

    data = result.data
    assert data["checkout_by"] == "sam"
    assert data["notes"] == "job 7"
    assert data["checkout_timestamp"]
    assert data["items"] == [
        {"item_no": a["item_no"], "item_name": "A", "quantity_checked_out": 2,
         "previous_balance": 5, "new_balance": 3},
        {"item_no": b["item_no"], "item_name": "B", "quantity_checked_out": 5,
         "previous_balance": 5, "new_balance": 0},
    ]
    assert await _quantities(item_service, a["item_no"]) == (5, 2)
    assert await _quantities(item_service, b["item_no"]) == (5, 5)


async def test_insufficient_line_rolls_back_whole_batch(checkout_service, item_service, make_item):
    a = await make_item("A", balance=5)
    b = await make_item("B", balance=1)

    with pytest.raises(InsufficientStockError) as exc_info:
        await checkout_service.checkout([
            {"item_no": a["item_no"], "quantity": 2},
            {"item_no": b["item_no"], "quantity": 3},
        ])

    assert exc_info.value.extra["item_no"] == b["item_no"]
    assert exc_info.value.extra["line_index"] == 1
    assert exc_info.value.available == 1
    assert exc_info.value.requested == 3
    assert await _quantities(item_service, a["item_no"]) == (5, 0)
    assert await _quantities(item_service, b["item_no"]) == (1, 0)


async def test_missing_item_rolls_back_whole_batch(checkout_service, item_service, make_item):
    a = await make_item("A", balance=5)

    with pytest.raises(ItemNotFoundError) as exc_info:
        await checkout_service.checkout([
            {"item_no": a["item_no"], "quantity": 1},
            {"item_no": 9999, "quantity": 1},
        ])

    assert exc_info.value.extra["line_index"] == 1
    assert await _quantities(item_service, a["item_no"]) == (5, 0)


async def test_repeated_item_sees_earlier_lines(checkout_service, item_service, make_item):
    a = await make_item("A", balance=5)

    with pytest.raises(InsufficientStockError) as exc_info:
        await checkout_service.checkout([
            {"item_no": a["item_no"], "quantity": 3},
            {"item_no": a["item_no"], "quantity": 3},
        ])
    assert exc_info.value.available == 2
    assert await _quantities(item_service, a["item_no"]) == (5, 0)

    result = await checkout_service.checkout([
        {"item_no": a["item_no"], "quantity": 3},
        {"item_no": a["item_no"], "quantity": 2},
    ])
    assert [line["new_balance"] for line in result.data["items"]] == [2, 0]
    assert await _quantities(item_service, a["item_no"]) == (5, 5)


@pytest.mark.parametrize("items, code", [
    ([], "EMPTY_CHECKOUT"),
    (None, "EMPTY_CHECKOUT"),
    (["bad"], "INVALID_CHECKOUT_LINE"),
    ([{"item_no": 1}], "MISSING_REQUIRED_FIELDS"),
    ([{"item_no": "x", "quantity": 1}], "INVALID_ITEM_NO"),
])
async def test_invalid_batches_are_rejected(checkout_service, items, code):
    with pytest.raises(ValidationError) as exc_info:
        await checkout_service.checkout(items)
    assert exc_info.value.code == code


async def test_non_positive_quantity_is_rejected_before_any_write(checkout_service, item_service, make_item):
    a = await make_item("A", balance=5)

    with pytest.raises(InvalidQuantityError) as exc_info:
        await checkout_service.checkout([
            {"item_no": a["item_no"], "quantity": 1},
            {"item_no": a["item_no"], "quantity": 0},
        ])

    assert exc_info.value.extra["line_index"] == 1
    assert await _quantities(item_service, a["item_no"]) == (5, 0)


async def test_store_failure_rolls_back_whole_batch(memory_store):
    items = ItemService(memory_store)
    checkout = CheckoutService(memory_store)
    a = (await items.create_item({"item_name": "A", "balance": 5})).data
    b = (await items.create_item({"item_name": "B", "balance": 5})).data
    memory_store.failing_item_nos.add(b["item_no"])

    with pytest.raises(StoreError):
        await checkout.checkout([
            {"item_no": a["item_no"], "quantity": 1},
            {"item_no": b["item_no"], "quantity": 1},
        ])

    assert memory_store.rows[a["item_no"]]["out_qty"] == 0
    assert memory_store.rows[b["item_no"]]["out_qty"] == 0
    assert memory_store.rollbacks == 1
