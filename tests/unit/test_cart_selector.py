"""Unit tests for cart source selection."""
import json
import pytest
from decimal import Decimal

from storefront.core.errors import CartFetchError, CartUnavailable, EmptyCartError, GatewayError
from storefront.services.cart.local_cart import InMemoryStore, JsonFileStore, LocalCartSource
from storefront.services.cart.models import CatalogProduct, ServerCart, ServerCartItem
from storefront.services.cart.selector import CartSourceSelector
from storefront.services.cart.server_cart import ServerCartSource
from storefront.services.checkout.models import Authenticated, Guest


def guest_blob(*entries):
    return json.dumps({"items": list(entries)})


class TestSourceFor:
    """Test which cart backs each identity."""

    def test_authenticated_uses_server_cart(self, cart_selector):
        source = cart_selector.source_for(Authenticated(user_id="u1"))
        assert isinstance(source, ServerCartSource)

    def test_guest_uses_local_cart(self, cart_selector):
        source = cart_selector.source_for(Guest())
        assert isinstance(source, LocalCartSource)
        assert source.key == "ekomart-cart"


class TestResolveItems:
    """Test loading checkout items."""

    async def test_guest_blob_with_variant(self, cart_selector, guest_store):
        guest_store.write(
            "ekomart-cart",
            guest_blob(
                {
                    "product": {"id": "p1", "name": "Tea", "price": 5, "sku": "TEA"},
                    "quantity": 2,
                    "variant": {"name": "Green", "attributes": {"leaf": "green"}, "price": 6},
                }
            ),
        )

        items = await cart_selector.resolve_items(Guest())

        assert len(items) == 1
        assert items[0].unit_price == Decimal("6")
        assert items[0].variant.name == "Green"
        assert items[0].line_total == Decimal("12")

    async def test_authenticated_items_from_server(self, cart_selector, mock_gateway):
        mock_gateway.get_cart.return_value = ServerCart(
            user_id="u1",
            items=[ServerCartItem(product_id="p2", name="Rice", price=Decimal("50.00"), quantity=1)],
        )

        items = await cart_selector.resolve_items(Authenticated(user_id="u1"))

        assert [item.product_ref for item in items] == ["p2"]
        mock_gateway.get_cart.assert_awaited_once()

    async def test_server_failure_raises_cart_unavailable(self, cart_selector, mock_gateway):
        mock_gateway.get_cart.side_effect = GatewayError("Failed to fetch cart", 500)

        with pytest.raises(CartUnavailable) as exc_info:
            await cart_selector.resolve_items(Authenticated(user_id="u1"))

        assert exc_info.value.message == "Failed to fetch cart"
        assert exc_info.value.redirect_to == "/products"

    async def test_empty_server_cart_redirects(self, cart_selector, mock_gateway):
        mock_gateway.get_cart.return_value = ServerCart(user_id="u1", items=[])

        with pytest.raises(EmptyCartError) as exc_info:
            await cart_selector.resolve_items(Authenticated(user_id="u1"))

        assert exc_info.value.redirect_to == "/products"
        assert exc_info.value.message == "Your cart is empty"

    async def test_missing_guest_blob_redirects(self, cart_selector):
        with pytest.raises(EmptyCartError):
            await cart_selector.resolve_items(Guest())

    async def test_empty_guest_blob_redirects(self, cart_selector, guest_store):
        guest_store.write("ekomart-cart", guest_blob())
        with pytest.raises(EmptyCartError):
            await cart_selector.resolve_items(Guest())

    async def test_corrupt_guest_blob_is_a_fetch_error(self, cart_selector, guest_store):
        guest_store.write("ekomart-cart", "[[[")

        with pytest.raises(CartFetchError) as exc_info:
            await cart_selector.resolve_items(Guest())

        assert exc_info.value.redirect_to == "/cart"
        assert exc_info.value.message == "Failed to load cart"

    async def test_guest_never_calls_backend(self, cart_selector, guest_store, mock_gateway):
        guest_store.write(
            "ekomart-cart",
            guest_blob({"product": {"id": "p1", "name": "Tea", "price": "5.00"}, "quantity": 1}),
        )

        await cart_selector.resolve_items(Guest())

        mock_gateway.get_cart.assert_not_awaited()

    async def test_guest_and_authenticated_items_are_identical(
        self, cart_selector, guest_store, mock_gateway
    ):
        mock_gateway.get_cart.return_value = ServerCart(
            user_id="u1",
            items=[ServerCartItem(product_id="p1", name="Tea", price=Decimal("10"), quantity=2)],
        )
        guest_store.write(
            "ekomart-cart",
            guest_blob({"product": {"id": "p1", "name": "Tea", "price": "10"}, "quantity": 2}),
        )

        server_items = await cart_selector.resolve_items(Authenticated(user_id="u1"))
        guest_items = await cart_selector.resolve_items(Guest())

        assert server_items == guest_items
        assert server_items[0].line_total == guest_items[0].line_total == Decimal("20")

    async def test_guest_item_line_total(self, cart_selector, guest_store):
        guest_store.write(
            "ekomart-cart",
            guest_blob({"product": {"id": "p1", "name": "Soap", "price": 15}, "quantity": 3}),
        )

        items = await cart_selector.resolve_items(Guest())

        assert [item.line_total for item in items] == [Decimal("45")]


class TestFromSettings:
    """Test building the selector from configuration."""

    async def test_guest_cart_dir_uses_files(self, mock_gateway, test_settings, tmp_path):
        settings = test_settings.model_copy(
            update={"guest_cart_dir": str(tmp_path), "guest_cart_key": "cart-test"}
        )
        selector = CartSourceSelector.from_settings(mock_gateway, settings)

        selector.source_for(Guest()).add_product(
            CatalogProduct(id="p1", name="Tea", price=Decimal("5.00"))
        )

        assert isinstance(selector.guest_store, JsonFileStore)
        assert (tmp_path / "cart-test.json").exists()

    def test_default_is_in_memory(self, mock_gateway, test_settings):
        selector = CartSourceSelector.from_settings(mock_gateway, test_settings)

        assert isinstance(selector.guest_store, InMemoryStore)
        assert selector.guest_cart_key == "ekomart-cart"
