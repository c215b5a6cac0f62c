"""Unit tests for order submission."""
import json
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock

from storefront.core.errors import FieldError, GatewayError, ValidationError
from storefront.services.cart.local_cart import CART_UPDATED, InMemoryStore, LocalCartSource
from storefront.services.cart.server_cart import ServerCartSource
from storefront.services.checkout.assembler import SubmissionAssembler
from storefront.services.checkout.models import (
    Address,
    Authenticated,
    DraftOrder,
    Guest,
    InlineAddress,
    InvoiceSummary,
    OrderConfirmation,
    OrderFlow,
    SavedAddressRef,
)
from storefront.services.gateway.base import StoreGateway
from storefront.services.pricing.models import ShippingOption


class UnwritableStore(InMemoryStore):
    def write(self, key, value):
        raise OSError("disk full")


@pytest.fixture
def confirmation():
    return OrderConfirmation(order_id="o1", order_number="ORD-000001", total=Decimal("64.00"))


@pytest.fixture
def saved_address(inline_address):
    data = {k: v for k, v in inline_address.items() if k != "kind"}
    return Address(id="addr-1", **{**data, "state": None})


def checkout_draft(items, address=None, **kwargs):
    return DraftOrder(
        flow=OrderFlow.CHECKOUT,
        items=items,
        shipping_address=address,
        **kwargs,
    )


def admin_draft(items, address=None, **kwargs):
    kwargs.setdefault("customer_id", "cust-1")
    return DraftOrder(
        flow=OrderFlow.ADMIN,
        items=items,
        shipping_address=address,
        **kwargs,
    )


class TestAddressResolution:
    """Test how the shipping address is resolved."""

    async def test_missing_address_fails_without_network(self, assembler, mock_gateway, make_item):
        result = await assembler.submit(checkout_draft([make_item()]), Guest())

        assert result.success is False
        assert result.error_code == "validation_error"
        mock_gateway.add_address.assert_not_awaited()
        mock_gateway.create_order.assert_not_awaited()

    async def test_missing_field_reported_per_field(
        self, assembler, mock_gateway, make_item, inline_address
    ):
        draft = checkout_draft(
            [make_item()], {**inline_address, "city": "  ", "phone": ""}
        )

        result = await assembler.submit(draft, Authenticated(user_id="u1"))

        assert result.success is False
        assert result.error_code == "missing_shipping_field"
        assert [n.message for n in result.notices] == [
            "shipping_address.phone: is required",
            "shipping_address.city: is required",
        ]
        mock_gateway.add_address.assert_not_awaited()
        mock_gateway.create_order.assert_not_awaited()

    async def test_saved_address_passed_by_id(
        self, assembler, mock_gateway, make_item, confirmation
    ):
        mock_gateway.create_order.return_value = confirmation
        draft = checkout_draft([make_item()], {"kind": "saved", "id": "addr-9"})

        result = await assembler.submit(draft, Authenticated(user_id="u1"))

        assert result.success is True
        payload = mock_gateway.create_order.await_args.args[0]
        assert payload.shipping_address_id == "addr-9"
        assert payload.billing_address_id == "addr-9"
        assert payload.shipping_address is None
        mock_gateway.add_address.assert_not_awaited()

    async def test_authenticated_inline_address_is_saved_first(
        self, assembler, mock_gateway, make_item, inline_address, saved_address, confirmation
    ):
        mock_gateway.add_address.return_value = saved_address
        mock_gateway.create_order.return_value = confirmation
        draft = checkout_draft([make_item()], inline_address)

        result = await assembler.submit(draft, Authenticated(user_id="u1"))

        assert result.success is True
        address_input = mock_gateway.add_address.await_args.args[0]
        assert address_input.is_default is True
        assert address_input.type == "home"
        assert address_input.state is None
        payload = mock_gateway.create_order.await_args.args[0]
        assert payload.shipping_address_id == "addr-1"
        assert draft.shipping_address == SavedAddressRef(id="addr-1")

    async def test_saved_address_not_default_when_book_exists(
        self, assembler, mock_gateway, make_item, inline_address, saved_address, confirmation
    ):
        mock_gateway.add_address.return_value = saved_address
        mock_gateway.create_order.return_value = confirmation
        draft = checkout_draft([make_item()], inline_address, has_saved_addresses=True)

        await assembler.submit(draft, Authenticated(user_id="u1"))

        assert mock_gateway.add_address.await_args.args[0].is_default is False

    async def test_address_persist_failure_stops_submission(
        self, assembler, mock_gateway, make_item, inline_address
    ):
        mock_gateway.add_address.side_effect = GatewayError("Failed to save address", 500)
        draft = checkout_draft([make_item()], inline_address)

        result = await assembler.submit(draft, Authenticated(user_id="u1"))

        assert result.success is False
        assert result.error_code == "address_persist_failed"
        assert result.notices[0].level == "error"
        assert result.notices[0].message == "Failed to save address"
        assert mock_gateway.create_order.await_count == 0
        assert isinstance(draft.shipping_address, InlineAddress)

    async def test_retry_after_order_failure_does_not_save_address_twice(
        self, assembler, mock_gateway, make_item, inline_address, saved_address, confirmation
    ):
        mock_gateway.add_address.return_value = saved_address
        mock_gateway.create_order.side_effect = [
            GatewayError("Service unavailable", 503),
            confirmation,
        ]
        draft = checkout_draft([make_item()], inline_address)

        first = await assembler.submit(draft, Authenticated(user_id="u1"))
        second = await assembler.submit(draft, Authenticated(user_id="u1"))

        assert first.success is False
        assert second.success is True
        assert mock_gateway.add_address.await_count == 1

    async def test_guest_cannot_use_saved_address(self, assembler, mock_gateway, make_item):
        draft = checkout_draft([make_item()], {"kind": "saved", "id": "addr-1"})

        result = await assembler.submit(draft, Guest())

        assert result.success is False
        mock_gateway.create_order.assert_not_awaited()


class TestGuestCheckout:
    """Test guest submissions."""

    async def test_guest_inline_checkout(
        self, assembler, cart_selector, mock_gateway, guest_store, cart_events,
        inline_address, confirmation
    ):
        guest_store.write(
            "ekomart-cart",
            json.dumps({"items": [{"product": {"id": "p1", "name": "Soap", "price": 15}, "quantity": 3}]}),
        )
        received = []
        cart_events.subscribe(lambda name, detail: received.append((name, detail)))
        mock_gateway.create_order.return_value = confirmation

        items = await cart_selector.resolve_items(Guest())
        draft = checkout_draft(
            items,
            inline_address,
            contact_email="rahim@example.com",
            shipping_option=ShippingOption.OUTSIDE_REGION,
        )
        result = await assembler.submit(draft, Guest())

        assert result.success is True
        assert result.cart_cleared is True
        mock_gateway.add_address.assert_not_awaited()
        mock_gateway.create_order.assert_awaited_once()

        payload = mock_gateway.create_order.await_args.args[0]
        assert payload.shipping_address.city == "Dhaka"
        assert payload.billing_address == payload.shipping_address
        assert payload.guest_email == "rahim@example.com"
        assert payload.shipping_option == ShippingOption.OUTSIDE_REGION
        assert payload.subtotal == Decimal("45.00")
        assert payload.shipping == Decimal("120.00")
        assert payload.tax == Decimal("3.60")
        assert payload.total == Decimal("168.60")
        assert payload.currency == "BDT"
        assert payload.customer_id is None

        assert json.loads(guest_store.read("ekomart-cart")) == {"items": []}
        assert received == [(CART_UPDATED, {"cartCount": 0})]
        assert result.notices[0].message == "Order placed successfully!"
        assert result.redirect_to == "/order-confirmation?orderId=o1&orderNumber=ORD-000001"

    async def test_guest_cart_write_failure_keeps_order(
        self, assembler, mock_gateway, make_item, inline_address, confirmation
    ):
        mock_gateway.create_order.return_value = confirmation
        cart = LocalCartSource(UnwritableStore())

        result = await assembler.submit(checkout_draft([make_item()], inline_address), Guest(), cart)

        assert result.success is True
        assert result.cart_cleared is False
        assert result.confirmation.order_number == "ORD-000001"
        assert result.notices[0].message == "Order placed successfully!"

    async def test_failing_cart_listener_keeps_order(
        self, assembler, mock_gateway, make_item, inline_address, confirmation,
        guest_store, cart_events
    ):
        def crashing_listener(name, detail):
            raise RuntimeError("indicator crashed")

        cart_events.subscribe(crashing_listener)
        mock_gateway.create_order.return_value = confirmation

        result = await assembler.submit(checkout_draft([make_item()], inline_address), Guest())

        assert result.success is True
        assert result.cart_cleared is True
        assert json.loads(guest_store.read("ekomart-cart")) == {"items": []}

    async def test_idempotency_key_is_stable_across_retries(
        self, assembler, mock_gateway, make_item, inline_address, confirmation
    ):
        mock_gateway.create_order.side_effect = [GatewayError("timeout"), confirmation]
        draft = checkout_draft([make_item()], inline_address)

        await assembler.submit(draft, Guest())
        await assembler.submit(draft, Guest())

        keys = [call.kwargs["idempotency_key"] for call in mock_gateway.create_order.await_args_list]
        assert keys == [draft.idempotency_key, draft.idempotency_key]
        assert all(call.kwargs["admin"] is False for call in mock_gateway.create_order.await_args_list)

    async def test_order_failure_surfaces_field_errors_and_keeps_draft(
        self, assembler, mock_gateway, make_item, inline_address, guest_store
    ):
        guest_store.write("ekomart-cart", json.dumps({"items": []}))
        mock_gateway.create_order.side_effect = GatewayError(
            "Validation failed",
            422,
            [FieldError("items.0.quantity", "must be at least 1"), FieldError("currency", "is required")],
        )
        items = [make_item(quantity=2)]
        draft = checkout_draft(items, inline_address)
        before = draft.model_dump()

        result = await assembler.submit(draft, Guest())

        assert result.success is False
        assert result.error_code == "order_create_failed"
        assert [n.message for n in result.notices] == [
            "items.0.quantity: must be at least 1",
            "currency: is required",
        ]
        assert draft.model_dump() == before
        assert result.cart_cleared is False

    async def test_order_failure_uses_backend_message(
        self, assembler, mock_gateway, make_item, inline_address
    ):
        mock_gateway.create_order.side_effect = GatewayError("Product p1 is out of stock", 400)

        result = await assembler.submit(checkout_draft([make_item()], inline_address), Guest())

        assert [n.message for n in result.notices] == ["Product p1 is out of stock"]

    async def test_empty_draft_rejected(self, assembler, mock_gateway, inline_address):
        result = await assembler.submit(checkout_draft([], inline_address), Guest())

        assert result.success is False
        assert result.notices[0].message == "At least one item is required"
        mock_gateway.create_order.assert_not_awaited()


class TestAuthenticatedCheckout:
    """Test signed-in submissions."""

    async def test_server_cart_cleared_after_order(
        self, assembler, mock_gateway, make_item, confirmation
    ):
        mock_gateway.create_order.return_value = confirmation
        draft = checkout_draft([make_item()], {"kind": "saved", "id": "addr-1"})

        result = await assembler.submit(draft, Authenticated(user_id="u1"))

        assert result.cart_cleared is True
        mock_gateway.clear_cart.assert_awaited_once()
        payload = mock_gateway.create_order.await_args.args[0]
        assert payload.guest_email is None

    async def test_cart_clear_failure_keeps_success(
        self, assembler, mock_gateway, make_item, confirmation
    ):
        mock_gateway.create_order.return_value = confirmation
        mock_gateway.clear_cart.side_effect = GatewayError("Failed to clear cart", 500)
        draft = checkout_draft([make_item()], {"kind": "saved", "id": "addr-1"})

        result = await assembler.submit(draft, Authenticated(user_id="u1"))

        assert result.success is True
        assert result.cart_cleared is False

    async def test_calls_are_sequential(
        self, assembler, mock_gateway, make_item, inline_address, saved_address, confirmation
    ):
        mock_gateway.add_address.return_value = saved_address
        mock_gateway.create_order.return_value = confirmation

        await assembler.submit(
            checkout_draft([make_item()], inline_address), Authenticated(user_id="u1")
        )

        called = [name for name, _, _ in mock_gateway.mock_calls]
        assert called == ["add_address", "create_order", "clear_cart"]


class TestAdminSubmission:
    """Test manual orders from the back-office."""

    async def test_admin_order_with_invoice(
        self, assembler, mock_gateway, make_item, inline_address, confirmation
    ):
        mock_gateway.create_order.return_value = confirmation
        mock_gateway.create_invoice.return_value = InvoiceSummary(
            id="i1", invoice_number="INV-000001", order_id="o1",
            amount=Decimal("64.00"), currency="USD",
        )
        draft = admin_draft(
            [make_item(name="Widget", price="25.00", quantity=2)],
            inline_address,
            create_invoice=True,
            payment_status="paid",
            order_status="confirmed",
        )

        result = await assembler.submit(draft, Authenticated(user_id="admin"))

        assert result.success is True
        assert result.invoice.invoice_number == "INV-000001"
        assert [n.message for n in result.notices] == ["Order and invoice created successfully!"]
        assert result.redirect_to == "/admin/orders/o1"
        mock_gateway.create_invoice.assert_awaited_once_with("o1")
        mock_gateway.add_address.assert_not_awaited()

        payload = mock_gateway.create_order.await_args.args[0]
        assert mock_gateway.create_order.await_args.kwargs["admin"] is True
        assert payload.customer_id == "cust-1"
        assert payload.payment_status == "paid"
        assert payload.order_status == "confirmed"
        assert payload.shipping_option is None
        assert payload.currency == "USD"
        assert payload.total == Decimal("64.00")

    async def test_invoice_failure_keeps_order(
        self, assembler, mock_gateway, make_item, inline_address, confirmation
    ):
        mock_gateway.create_order.return_value = confirmation
        mock_gateway.create_invoice.side_effect = GatewayError(
            "Invoice already exists for this order", 400
        )
        cart = AsyncMock(spec=StoreGateway)
        draft = admin_draft([make_item()], inline_address, create_invoice=True)

        result = await assembler.submit(
            draft, Authenticated(user_id="admin"), cart_source=ServerCartSource(cart)
        )

        assert result.success is True
        assert result.confirmation.order_id == "o1"
        assert result.invoice is None
        assert [(n.level, n.message) for n in result.notices] == [
            ("success", "Order created successfully!"),
            ("warning", "Invoice already exists for this order"),
        ]
        assert result.cart_cleared is True
        cart.clear_cart.assert_awaited_once()

    async def test_admin_without_invoice(
        self, assembler, mock_gateway, make_item, inline_address, confirmation
    ):
        mock_gateway.create_order.return_value = confirmation

        result = await assembler.submit(
            admin_draft([make_item()], inline_address), Authenticated(user_id="admin")
        )

        assert [n.message for n in result.notices] == ["Order created successfully!"]
        mock_gateway.create_invoice.assert_not_awaited()
        mock_gateway.clear_cart.assert_not_awaited()

    async def test_custom_items_tagged(
        self, assembler, mock_gateway, make_item, inline_address, confirmation
    ):
        mock_gateway.create_order.return_value = confirmation
        draft = admin_draft(
            [make_item("p1", "30.00")],
            inline_address,
            custom_items=[make_item("anything", "25.00", name="Engraving")],
        )

        await assembler.submit(draft, Authenticated(user_id="admin"))

        payload = mock_gateway.create_order.await_args.args[0]
        assert [line.product for line in payload.items] == ["p1", "custom"]
        assert payload.items[1].sku == "N/A"
        assert payload.subtotal == Decimal("55.00")
        assert payload.shipping == Decimal("0.00")

    async def test_customer_required(self, assembler, mock_gateway, make_item, inline_address):
        draft = admin_draft([make_item()], inline_address, customer_id=None)

        result = await assembler.submit(draft, Authenticated(user_id="admin"))

        assert result.notices[0].message == "Customer is required"
        mock_gateway.create_order.assert_not_awaited()

    def test_quote_caches_admin_totals(self, assembler, make_item):
        draft = admin_draft([make_item(price="50.00")])

        totals = assembler.quote(draft)

        assert draft.totals == totals
        assert totals.total == Decimal("64.00")

    def test_quote_does_not_cache_checkout_totals(self, assembler, make_item):
        draft = checkout_draft([make_item(price="50.00")])

        totals = assembler.quote(draft)

        assert draft.totals is None
        assert totals.total == Decimal("114.00")

    async def test_discount_over_total_rejected_under_reject_policy(
        self, mock_gateway, test_settings, make_item, inline_address
    ):
        settings = test_settings.model_copy(update={"discount_policy": "reject"})
        draft = admin_draft([make_item(price="5.00")], inline_address, discount=Decimal("500"))

        result = await SubmissionAssembler(mock_gateway, settings).submit(
            draft, Authenticated(user_id="admin")
        )

        assert result.success is False
        assert result.error_code == "discount_exceeds_total"
        mock_gateway.create_order.assert_not_awaited()


class TestValidationErrorShape:
    """Test error helpers used by submission results."""

    def test_validation_error_message(self):
        error = ValidationError("Please select or enter a shipping address")
        assert error.messages() == ["Please select or enter a shipping address"]
        assert error.code == "validation_error"
