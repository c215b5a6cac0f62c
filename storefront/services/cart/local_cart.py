"""Client-persisted (guest) cart source."""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, List, Optional

from storefront.services.cart.base import CartSource
from storefront.services.cart.models import (
    CatalogProduct,
    CatalogVariant,
    StoredCart,
    StoredCartEntry,
    effective_stock,
)
from storefront.services.pricing.models import LineItem

logger = logging.getLogger(__name__)

CART_UPDATED = "cartUpdated"

CartListener = Callable[[str, Dict[str, int]], None]


class KeyValueStore(ABC):
    """String blobs under fixed keys, the way browser storage works."""

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        pass


class InMemoryStore(KeyValueStore):
    """Process-local store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore(KeyValueStore):
    """One JSON file per key inside a directory."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def write(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        with open(self._path(key), "w", encoding="utf-8") as f:
            f.write(value)


class CartEvents:
    """Broadcasts cart changes to cart-count indicators."""

    def __init__(self):
        self._listeners: List[CartListener] = []

    def subscribe(self, listener: CartListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: CartListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, cart_count: int) -> None:
        detail = {"cartCount": cart_count}
        for listener in list(self._listeners):
            try:
                listener(CART_UPDATED, detail)
            except Exception as e:
                logger.error(
                    f"[CART] Cart listener failed - Error: {type(e).__name__}: {str(e)}",
                    exc_info=True
                )


class LocalCartSource(CartSource):
    """
    Guest cart stored as a JSON blob under a fixed key.

    Every mutation is read-modify-write against the same key with no locking,
    so concurrent writers (two tabs) resolve as last write wins.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = "ekomart-cart",
        events: Optional[CartEvents] = None,
    ):
        self.store = store
        self.key = key
        self.events = events or CartEvents()

    def load(self) -> StoredCart:
        """Read the blob. Raises ValueError when it is not a valid cart."""
        raw = self.store.read(self.key)
        if not raw:
            return StoredCart()
        return StoredCart.model_validate_json(raw)

    def _load_lenient(self) -> StoredCart:
        try:
            return self.load()
        except ValueError as e:
            logger.warning(f"[CART] Discarding unreadable guest cart: {str(e)}")
            return StoredCart()

    def save(self, cart: StoredCart) -> None:
        self.store.write(self.key, cart.model_dump_json())
        self.events.publish(cart.item_count())

    async def get(self) -> List[LineItem]:
        return [entry.to_line_item() for entry in self.load().items]

    async def set(self, items: List[LineItem]) -> None:
        self.save(StoredCart(items=[StoredCartEntry.from_line_item(i) for i in items]))

    async def clear(self) -> None:
        self.store.write(self.key, json.dumps({"items": []}))
        self.events.publish(0)
        logger.info("[CART] Guest cart cleared")

    def add_product(
        self,
        product: CatalogProduct,
        quantity: int = 1,
        variant: Optional[CatalogVariant] = None,
    ) -> StoredCart:
        """Add a product, incrementing the quantity of a matching entry.

        Quantities are capped at the variant stock, or the product stock when
        the variant has none.
        """
        cart = self._load_lenient()
        variant_name = variant.name if variant else None
        stock = effective_stock(product, variant)

        entry = next(
            (
                e for e in cart.items
                if e.product.id == product.id and e.variant_name() == variant_name
            ),
            None,
        )
        wanted = (entry.quantity if entry else 0) + quantity
        if stock is not None and wanted > stock:
            logger.warning(
                f"[CART] Only {stock} of {product.id} in stock, requested {wanted}"
            )
            wanted = stock
        if wanted <= 0:
            return cart

        if entry:
            entry.quantity = wanted
        else:
            cart.items.append(
                StoredCartEntry(product=product, quantity=wanted, variant=variant)
            )
        self.save(cart)
        return cart

    def remove_item(self, product_id: str, variant_name: Optional[str] = None) -> StoredCart:
        cart = self._load_lenient()
        cart.items = [
            entry for entry in cart.items if not entry.matches(product_id, variant_name)
        ]
        self.save(cart)
        return cart

    def update_quantity(
        self, product_id: str, quantity: int, variant_name: Optional[str] = None
    ) -> StoredCart:
        """Set a quantity; zero or less removes the entry."""
        if quantity <= 0:
            return self.remove_item(product_id, variant_name)
        cart = self._load_lenient()
        for entry in cart.items:
            if entry.matches(product_id, variant_name):
                entry.quantity = quantity
        self.save(cart)
        return cart

    def get_item_quantity(self, product_id: str, variant_name: Optional[str] = None) -> int:
        for entry in self._load_lenient().items:
            if entry.matches(product_id, variant_name):
                return entry.quantity
        return 0

    def item_count(self) -> int:
        return self._load_lenient().item_count()
