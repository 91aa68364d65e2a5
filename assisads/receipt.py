from jinja2 import Environment, DictLoader

from .errors import NoCredentials
from .helpers import to_br_date
from .model.entities import Order

RECEIPT_TEMPLATE = """\
--- ORDER {{ order.id }} ---
DATE: {{ date }}
PRODUCT: {{ order.items | map(attribute='name') | join(', ') }}

{{ order.credentials | join(sep) }}

--- THANK YOU FOR SHOPPING AT ASSIS ADS ---"""

env = Environment(
    loader=DictLoader({"receipt.txt": RECEIPT_TEMPLATE}),
    autoescape=False,
    keep_trailing_newline=False,
)


def render_receipt(order: Order) -> str:
    if not order.credentials:
        raise NoCredentials()
    return env.get_template("receipt.txt").render(
        order=order, date=to_br_date(order.created_at), sep="\n\n"
    )


def receipt_filename(order: Order) -> str:
    return f"assis-ads-order-{order.id}.txt"
