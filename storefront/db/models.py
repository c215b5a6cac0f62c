"""Database models."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def new_id() -> str:
    return uuid4().hex


Money = Numeric(12, 2)


class Address(Base):
    """Customer address book entry."""

    __tablename__ = "addresses"

    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    email = Column(String, nullable=True)
    address = Column(Text, nullable=False)
    city = Column(String, nullable=False)
    state = Column(String, nullable=True)
    zip_code = Column(String, nullable=True)
    country = Column(String, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    type = Column(String, default="home", nullable=False)  # home, work, other
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CartItem(Base):
    """Server cart line of a signed-in customer."""

    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    product_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    sku = Column(String, nullable=True)
    price = Column(Money, nullable=False)  # variant price when a variant is set
    quantity = Column(Integer, default=1, nullable=False)
    variant = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Order(Base):
    """Order model."""

    __tablename__ = "orders"

    id = Column(String(32), primary_key=True, default=new_id)
    order_number = Column(String, unique=True, index=True, nullable=False)
    user_id = Column(String, index=True, nullable=True)  # None for guest orders
    guest_email = Column(String, nullable=True)
    channel = Column(String, default="checkout", nullable=False)  # checkout, admin
    idempotency_key = Column(String, unique=True, nullable=True)
    status = Column(String, default="pending", nullable=False)
    payment_method = Column(String, nullable=False)
    payment_status = Column(String, default="pending", nullable=False)
    shipping_option = Column(String, nullable=True)
    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=False)
    notes = Column(Text, nullable=True)
    subtotal = Column(Money, nullable=False)
    tax = Column(Money, nullable=False)
    shipping = Column(Money, nullable=False)
    discount = Column(Money, default=0, nullable=False)
    total = Column(Money, nullable=False)
    currency = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    invoice = relationship("Invoice", back_populates="order", uselist=False)


class OrderItem(Base):
    """Order item model."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(32), ForeignKey("orders.id"), nullable=False)
    product_ref = Column(String, nullable=False)  # product id or "custom"
    name = Column(String, nullable=False)
    sku = Column(String, nullable=True)
    unit_price = Column(Money, nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    line_total = Column(Money, nullable=False)
    variant = Column(JSON, nullable=True)

    # Relationships
    order = relationship("Order", back_populates="items")


class Invoice(Base):
    """Invoice issued for an order."""

    __tablename__ = "invoices"

    id = Column(String(32), primary_key=True, default=new_id)
    invoice_number = Column(String, unique=True, index=True, nullable=False)
    order_id = Column(String(32), ForeignKey("orders.id"), unique=True, nullable=False)
    amount = Column(Money, nullable=False)
    currency = Column(String, nullable=False)
    status = Column(String, default="issued", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    order = relationship("Order", back_populates="invoice")
