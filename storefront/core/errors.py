"""Checkout error taxonomy."""
from typing import List, Optional


class FieldError:
    """A single field-level problem reported by validation or the backend."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message

    def __str__(self) -> str:
        return f"{self.field}: {self.message}" if self.field else self.message

    def __eq__(self, other) -> bool:
        if not isinstance(other, FieldError):
            return NotImplemented
        return (self.field, self.message) == (other.field, other.message)

    def __repr__(self) -> str:
        return f"FieldError(field={self.field!r}, message={self.message!r})"


class CheckoutError(Exception):
    """Base class for every failure the checkout flows report to the user."""

    code = "checkout_error"
    default_message = "Something went wrong"

    def __init__(
        self,
        message: Optional[str] = None,
        field_errors: Optional[List[FieldError]] = None,
    ):
        self.message = message or self.default_message
        self.field_errors = field_errors or []
        super().__init__(self.message)

    def messages(self) -> List[str]:
        """User-facing messages, one per field error when the backend sent them."""
        if self.field_errors:
            return [str(error) for error in self.field_errors]
        return [self.message]


class ValidationError(CheckoutError):
    """Draft is incomplete. Raised before any network call is made."""

    code = "validation_error"
    default_message = "Please fill in all required fields"


class MissingShippingFieldError(ValidationError):
    """Inline shipping address is missing a required field."""

    code = "missing_shipping_field"
    default_message = "missing shipping field"

    def __init__(self, fields: List[str]):
        self.fields = fields
        super().__init__(
            "Please fill in all required shipping address fields",
            [FieldError(f"shipping_address.{name}", "is required") for name in fields],
        )


class DiscountExceedsTotalError(ValidationError):
    """Discount larger than subtotal + tax + shipping under the reject policy."""

    code = "discount_exceeds_total"
    default_message = "Discount cannot exceed the order total"


class EmptyCartError(CheckoutError):
    """Cart has no items. Checkout is meaningless, so the page redirects."""

    code = "empty_cart"
    default_message = "Your cart is empty"

    def __init__(self, message: Optional[str] = None, redirect_to: str = "/products"):
        self.redirect_to = redirect_to
        super().__init__(message)


class CartFetchError(CheckoutError):
    """Cart could not be loaded."""

    code = "cart_unavailable"
    default_message = "Failed to load cart"

    def __init__(self, message: Optional[str] = None, redirect_to: str = "/products"):
        self.redirect_to = redirect_to
        super().__init__(message)


CartUnavailable = CartFetchError


class AddressPersistError(CheckoutError):
    """Inline address could not be saved for an authenticated customer."""

    code = "address_persist_failed"
    default_message = "Failed to save address"


class OrderCreateError(CheckoutError):
    """Backend rejected or could not process order creation."""

    code = "order_create_failed"
    default_message = "Failed to create order"


class InvoiceCreateError(CheckoutError):
    """Invoice follow-up failed. Never rolls back the order."""

    code = "invoice_create_failed"
    default_message = "Failed to create invoice"


class GatewayError(Exception):
    """A collaborator call failed (transport error or non-2xx response)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        field_errors: Optional[List[FieldError]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.field_errors = field_errors or []
        super().__init__(message)
