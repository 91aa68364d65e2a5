from sqlalchemy.orm import declarative_base
from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Boolean,
    Text,
    JSON,
    Index,
)

from .entities import STATUS_COMPLETED


Base = declarative_base()


# ----------------------------
# ORM models
# ----------------------------
class StockUnit(Base):
    __tablename__ = "stock"
    id = Column(Integer, primary_key=True, autoincrement=True)
    # facebook | proxy | tiktok | email
    type = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    is_sold = Column(Boolean, nullable=False, default=False)

    # set exactly once, together with is_sold
    sold_to_email = Column(String, nullable=True)
    order_id = Column(String, nullable=True)

    __table_args__ = (
        Index("stock_type_is_sold_idx", "type", "is_sold"),
    )


class OrderRow(Base):
    __tablename__ = "orders"
    id = Column(String, primary_key=True)
    user_email = Column(String, nullable=False, index=True)
    total = Column(Float, nullable=False)  # BRL, stored as charged
    items = Column(JSON, nullable=False)
    credentials = Column(JSON, nullable=False)

    # STATUS_COMPLETED | STATUS_PENDING (model/entities.py)
    status = Column(String, nullable=False, default=STATUS_COMPLETED)
    created_at = Column(Float, nullable=False)
