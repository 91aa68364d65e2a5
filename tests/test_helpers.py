from datetime import datetime, timezone

from assisads.helpers import format_brl, to_br_date


def test_br_date_follows_brasilia_time():
    # 02:30 UTC on the 8th is still the evening of the 7th in Sao Paulo
    late = datetime(2026, 3, 8, 2, 30, tzinfo=timezone.utc).timestamp()
    assert to_br_date(late) == "07/03/2026"

    morning = datetime(2026, 3, 8, 3, 30, tzinfo=timezone.utc).timestamp()
    assert to_br_date(morning) == "08/03/2026"


def test_format_brl():
    assert format_brl(70) == "R$ 70.00"
    assert format_brl(15.5) == "R$ 15.50"
