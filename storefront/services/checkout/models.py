"""Checkout models."""
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from storefront.core.errors import CheckoutError
from storefront.services.pricing.models import (
    CUSTOM_PRODUCT_REF,
    LineItem,
    LineItemVariant,
    OrderTotals,
    ShippingOption,
)


class Authenticated(BaseModel):
    """Signed-in customer with a server cart and an address book."""

    kind: Literal["authenticated"] = "authenticated"
    user_id: str


class Guest(BaseModel):
    """Anonymous shopper whose cart lives in client storage."""

    kind: Literal["guest"] = "guest"


Identity = Union[Authenticated, Guest]


class OrderFlow(str, Enum):
    """Call sites that submit orders."""

    CHECKOUT = "checkout"
    ADMIN = "admin"


class PaymentMethod(str, Enum):
    COD = "cod"
    CARD = "card"
    BKASH = "bkash"
    NAGAD = "nagad"
    ROCKET = "rocket"
    BANK = "bank"


class SavedAddressRef(BaseModel):
    """Reference to an address in the customer's address book."""

    kind: Literal["saved"] = "saved"
    id: str


REQUIRED_ADDRESS_FIELDS = ("name", "phone", "address", "city", "country")


class InlineAddress(BaseModel):
    """Address typed into the checkout form."""

    kind: Literal["inline"] = "inline"
    name: str = ""
    phone: str = ""
    email: Optional[str] = None
    address: str = ""
    city: str = ""
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str = ""

    def missing_fields(self) -> List[str]:
        """Required fields that are empty or whitespace."""
        return [
            name
            for name in REQUIRED_ADDRESS_FIELDS
            if not (getattr(self, name) or "").strip()
        ]

    def snapshot(self) -> dict:
        """Address fields without the discriminator, blank optionals dropped."""
        data = self.model_dump(exclude={"kind"})
        for name in ("email", "state", "zip_code"):
            if not data.get(name):
                data[name] = None
        return data


AddressRef = Annotated[
    Union[SavedAddressRef, InlineAddress], Field(discriminator="kind")
]


class AddressInput(BaseModel):
    """Body of an address-creation call."""

    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: Optional[str] = None
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str = Field(min_length=1)
    is_default: bool = False
    type: Literal["home", "work", "other"] = "home"


class Address(AddressInput):
    """Persisted address."""

    id: str


class DraftOrder(BaseModel):
    """Working order assembled by the checkout page or the admin form."""

    flow: OrderFlow = OrderFlow.CHECKOUT
    items: List[LineItem] = []
    custom_items: List[LineItem] = []
    shipping_address: Optional[AddressRef] = None
    billing_address: Optional[AddressRef] = None
    payment_method: PaymentMethod = PaymentMethod.COD
    payment_status: Literal["pending", "paid", "failed", "refunded"] = "pending"
    order_status: Literal[
        "pending", "confirmed", "processing", "shipped", "delivered", "cancelled"
    ] = "pending"
    shipping_option: ShippingOption = ShippingOption.INSIDE_REGION
    discount: Decimal = Decimal("0")
    notes: Optional[str] = None
    contact_email: Optional[str] = None
    customer_id: Optional[str] = None
    currency: Optional[str] = None
    create_invoice: bool = False
    has_saved_addresses: bool = False
    # Cached totals, written back on every admin recalculation
    totals: Optional[OrderTotals] = None
    idempotency_key: str = Field(default_factory=lambda: uuid4().hex)

    def all_items(self) -> List[LineItem]:
        """Product items followed by custom items tagged with the custom ref."""
        custom = [
            item.model_copy(update={"product_ref": CUSTOM_PRODUCT_REF})
            for item in self.custom_items
        ]
        return list(self.items) + custom


class OrderLine(BaseModel):
    """Line as sent to the order-creation endpoint."""

    product: str
    name: str
    sku: str = "N/A"
    price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)
    variant: Optional[LineItemVariant] = None

    @classmethod
    def from_line_item(cls, item: LineItem) -> "OrderLine":
        return cls(
            product=item.product_ref,
            name=item.name,
            sku=item.sku or (item.variant.sku if item.variant and item.variant.sku else "N/A"),
            price=item.unit_price,
            quantity=item.quantity,
            variant=item.variant,
        )

    def to_line_item(self) -> LineItem:
        return LineItem(
            product_ref=self.product,
            name=self.name,
            unit_price=self.price,
            quantity=self.quantity,
            sku=None if self.sku == "N/A" else self.sku,
            variant=self.variant,
        )


class OrderPayload(BaseModel):
    """Body of an order-creation call."""

    payment_method: PaymentMethod
    payment_status: Optional[str] = None
    order_status: Optional[str] = None
    notes: Optional[str] = None
    shipping_option: Optional[ShippingOption] = None
    shipping_address_id: Optional[str] = None
    billing_address_id: Optional[str] = None
    shipping_address: Optional[InlineAddress] = None
    billing_address: Optional[InlineAddress] = None
    items: List[OrderLine] = []
    subtotal: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    currency: str
    guest_email: Optional[str] = None
    customer_id: Optional[str] = None


class OrderConfirmation(BaseModel):
    """Backend acknowledgement of a created order."""

    order_id: str
    order_number: str
    total: Decimal


class InvoiceSummary(BaseModel):
    id: str
    invoice_number: str
    order_id: str
    amount: Decimal
    currency: str
    status: str = "issued"


class Notice(BaseModel):
    """User-facing message, the equivalent of a toast."""

    level: Literal["success", "error", "warning", "info"]
    message: str

    @classmethod
    def success(cls, message: str) -> "Notice":
        return cls(level="success", message=message)

    @classmethod
    def error(cls, message: str) -> "Notice":
        return cls(level="error", message=message)

    @classmethod
    def warning(cls, message: str) -> "Notice":
        return cls(level="warning", message=message)


class SubmissionResult(BaseModel):
    """Observable outcome of one submission attempt."""

    success: bool
    confirmation: Optional[OrderConfirmation] = None
    invoice: Optional[InvoiceSummary] = None
    notices: List[Notice] = []
    error_code: Optional[str] = None
    redirect_to: Optional[str] = None
    cart_cleared: bool = False

    @classmethod
    def failed(cls, error: CheckoutError) -> "SubmissionResult":
        return cls(
            success=False,
            error_code=error.code,
            notices=[Notice.error(message) for message in error.messages()],
            redirect_to=getattr(error, "redirect_to", None),
        )
