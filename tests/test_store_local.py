import pytest

from assisads.errors import LedgerWriteFailure
from assisads.model.store import local_stores, new_stores
from assisads.model.store._local import PLACEHOLDER_CREDENTIALS


async def test_claims_cycle_through_placeholders():
    st = local_stores()

    first = await st.inventory.claim("facebook", 3, "a@example.com", "PED-1")
    second = await st.inventory.claim("proxy", 1, "b@example.com", "PED-2")

    assert [u.content for u in first] == [
        PLACEHOLDER_CREDENTIALS[0],
        PLACEHOLDER_CREDENTIALS[1],
        PLACEHOLDER_CREDENTIALS[0],
    ]
    assert second[0].content == PLACEHOLDER_CREDENTIALS[1]
    assert second[0].type == "proxy"
    assert second[0].sold_to_email == "b@example.com"


async def test_offline_inventory_is_unbounded_and_unstockable():
    st = local_stores()
    assert await st.inventory.available("facebook") is None
    with pytest.raises(NotImplementedError):
        await st.inventory.stock("facebook", ["x"])


async def test_ledger(make_order):
    st = local_stores()
    await st.ledger.append(make_order("PED-1", created_at=1.0))
    await st.ledger.append(make_order("PED-2", created_at=2.0))

    assert [o.id for o in await st.ledger.list_by_buyer(
        "buyer@example.com")] == ["PED-2", "PED-1"]
    assert await st.ledger.get("PED-1", "other@example.com") is None
    with pytest.raises(LedgerWriteFailure):
        await st.ledger.append(make_order("PED-1"))


def test_factory_refuses_per_request_local_stores():
    with pytest.raises(RuntimeError):
        new_stores("local")
    with pytest.raises(ValueError):
        new_stores("mongo")
