import logging

import pytest

from assisads.errors import EmptyCart, InsufficientStock, LedgerWriteFailure
from assisads.fulfillment import fulfill
from assisads.model.store import OrderLedger, local_stores
from assisads.model.store._local import PLACEHOLDER_CREDENTIALS


class BrokenLedger(OrderLedger):
    async def append(self, order):
        raise LedgerWriteFailure(order.id, "disk full", order.credentials)

    async def list_by_buyer(self, email):
        return []

    async def get(self, order_id, email):
        return None


async def test_single_unit_sale(sql_stores, fb_line):
    inv, ledger = sql_stores.inventory, sql_stores.ledger
    await inv.stock("facebook", ["fb-login-1"])

    res = await fulfill(
        inv, ledger, "PED-1", "ana@example.com", [fb_line()], 70.00
    )

    assert res.success
    assert res.credentials == ["fb-login-1"]
    assert await inv.available("facebook") == 0
    orders = await ledger.list_by_buyer("ana@example.com")
    assert len(orders) == 1
    assert orders[0].total == 70.00
    assert orders[0].credentials == ["fb-login-1"]
    assert orders[0].status == "completed"

    with pytest.raises(InsufficientStock):
        await fulfill(
            inv, ledger, "PED-2", "bia@example.com", [fb_line()], 70.00
        )
    assert await ledger.list_by_buyer("bia@example.com") == []


async def test_multi_line_order(sql_stores, fb_line, proxy_line):
    inv, ledger = sql_stores.inventory, sql_stores.ledger
    await inv.stock("facebook", ["fb-1", "fb-2", "fb-3"])
    await inv.stock("proxy", ["px-1"])
    lines = [fb_line(quantity=2), proxy_line(quantity=1)]

    res = await fulfill(
        inv, ledger, "PED-1", "ana@example.com", lines, 155.00,
        created_at=1_760_000_000.0,
    )

    assert res.credentials == ["fb-1", "fb-2", "px-1"]
    stored = await ledger.get("PED-1", "ana@example.com")
    assert stored is not None
    assert stored.credentials == res.credentials
    assert [(i.id, i.quantity) for i in stored.items] == [("p1", 2), ("p2", 1)]
    assert stored.total == 155.00
    assert stored.created_at == 1_760_000_000.0


async def test_order_items_are_a_snapshot(fb_line):
    st = local_stores()
    line = fb_line()

    res = await fulfill(
        st.inventory, st.ledger, "PED-1", "ana@example.com", [line], 70.00
    )
    line.quantity = 9
    line.price = 1.0

    assert res.order.items[0].quantity == 1
    assert res.order.items[0].price == 70.00


async def test_short_line_keeps_earlier_claims(sql_stores, fb_line,
                                               proxy_line):
    inv, ledger = sql_stores.inventory, sql_stores.ledger
    await inv.stock("facebook", ["fb-1"])

    with pytest.raises(InsufficientStock) as ei:
        await fulfill(
            inv, ledger, "PED-1", "ana@example.com",
            [fb_line(), proxy_line()], 85.00,
        )

    assert ei.value.product_type == "proxy"
    # the facebook unit stays sold, no order row is written
    assert await inv.available("facebook") == 0
    assert await ledger.get("PED-1", "ana@example.com") is None


async def test_empty_cart_is_rejected(sql_stores):
    with pytest.raises(EmptyCart):
        await fulfill(
            sql_stores.inventory, sql_stores.ledger,
            "PED-1", "ana@example.com", [], 0.0,
        )


async def test_replayed_order_id_claims_again_then_fails(sql_stores,
                                                         fb_line):
    inv, ledger = sql_stores.inventory, sql_stores.ledger
    await inv.stock("facebook", ["fb-1", "fb-2"])

    await fulfill(inv, ledger, "PED-1", "ana@example.com", [fb_line()], 70.0)
    with pytest.raises(LedgerWriteFailure):
        await fulfill(
            inv, ledger, "PED-1", "ana@example.com", [fb_line()], 70.0
        )

    # both claims went through; only the first order was written
    assert await inv.available("facebook") == 0
    orders = await ledger.list_by_buyer("ana@example.com")
    assert [o.credentials for o in orders] == [["fb-1"]]


async def test_ledger_failure_is_logged_as_stranded(sql_stores, fb_line,
                                                    caplog):
    inv = sql_stores.inventory
    await inv.stock("facebook", ["fb-1"])

    with caplog.at_level(logging.ERROR, logger="assisads.fulfillment"):
        with pytest.raises(LedgerWriteFailure) as ei:
            await fulfill(
                inv, BrokenLedger(), "PED-9", "ana@example.com",
                [fb_line()], 70.0,
            )

    assert ei.value.credentials == ["fb-1"]
    assert "STRANDED INVENTORY" in caplog.text
    assert "PED-9" in caplog.text
    assert await inv.available("facebook") == 0


async def test_offline_stores_deliver_placeholders(fb_line):
    st = local_stores()

    res = await fulfill(
        st.inventory, st.ledger, "PED-1", "ana@example.com",
        [fb_line(quantity=2)], 140.0,
    )

    assert res.credentials == PLACEHOLDER_CREDENTIALS
    assert (await st.ledger.list_by_buyer("ana@example.com"))[0].id == "PED-1"
