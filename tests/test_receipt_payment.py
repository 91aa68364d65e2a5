from datetime import datetime, timezone
import re

import pytest

from assisads.errors import InvalidPaymentReference, NoCredentials
from assisads.payment import ManualPix, new_order_id
from assisads.receipt import receipt_filename, render_receipt


def test_receipt_layout(make_order):
    created = datetime(2026, 3, 7, 12, 0, tzinfo=timezone.utc).timestamp()
    order = make_order(
        "PED-1234567ABC", created_at=created,
        credentials=("login: a | pass: 1", "login: b | pass: 2"),
    )

    body = render_receipt(order)

    assert body == (
        "--- ORDER PED-1234567ABC ---\n"
        "DATE: 07/03/2026\n"
        "PRODUCT: Perfil Facebook Aquecido\n"
        "\n"
        "login: a | pass: 1\n"
        "\n"
        "login: b | pass: 2\n"
        "\n"
        "--- THANK YOU FOR SHOPPING AT ASSIS ADS ---"
    )
    assert receipt_filename(order) == "assis-ads-order-PED-1234567ABC.txt"


def test_receipt_needs_credentials(make_order):
    with pytest.raises(NoCredentials):
        render_receipt(make_order(credentials=()))


def test_pix_instructions():
    pix = ManualPix(pix_key="KEY 123")
    got = pix.instructions(140.0)

    assert got["pix_key"] == "KEY 123"
    assert got["pix_type"] == "COPIA E COLA"
    assert got["qr_code_url"].endswith("data=KEY%20123")
    assert got["amount"] == 140.0
    assert got["amount_formatted"] == "R$ 140.00"


@pytest.mark.parametrize("ref", ["", "   ", "1234", " abc "])
def test_short_payment_reference_is_rejected(ref):
    with pytest.raises(InvalidPaymentReference):
        ManualPix().accept_reference(ref)


def test_payment_reference_is_trimmed():
    assert ManualPix().accept_reference("  E1234567  ") == "E1234567"


def test_order_ids_look_like_ped_numbers():
    for oid in (new_order_id(), new_order_id()):
        assert re.fullmatch(r"PED-\d{6}[0-9A-F]{4}", oid)
