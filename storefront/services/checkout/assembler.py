"""Order submission for customer checkout and admin manual orders."""
import logging
from typing import List, Optional, Tuple

from storefront.core.config import Settings
from storefront.core.errors import (
    AddressPersistError,
    CheckoutError,
    GatewayError,
    InvoiceCreateError,
    MissingShippingFieldError,
    OrderCreateError,
    ValidationError,
)
from storefront.services.cart.base import CartSource
from storefront.services.cart.selector import CartSourceSelector
from storefront.services.checkout.models import (
    AddressInput,
    Authenticated,
    DraftOrder,
    Guest,
    Identity,
    InlineAddress,
    InvoiceSummary,
    Notice,
    OrderConfirmation,
    OrderFlow,
    OrderLine,
    OrderPayload,
    SavedAddressRef,
    SubmissionResult,
)
from storefront.services.gateway.base import StoreGateway
from storefront.services.pricing.calculator import TotalsCalculator
from storefront.services.pricing.models import OrderTotals

logger = logging.getLogger(__name__)

ResolvedAddress = Tuple[Optional[str], Optional[InlineAddress]]


class SubmissionAssembler:
    """Resolves the address, builds the payload and creates the order.

    Network calls are strictly sequential: address save, order creation,
    then the optional invoice. Failures become notices on the returned
    SubmissionResult and the draft stays intact for a retry.
    """

    def __init__(
        self,
        gateway: StoreGateway,
        settings: Settings,
        cart_selector: Optional[CartSourceSelector] = None,
    ):
        self.gateway = gateway
        self.settings = settings
        self.cart_selector = cart_selector

    def calculator_for(self, draft: DraftOrder) -> TotalsCalculator:
        if draft.flow == OrderFlow.ADMIN:
            return TotalsCalculator.for_admin(self.settings)
        return TotalsCalculator.for_checkout(self.settings, draft.shipping_option)

    def quote(self, draft: DraftOrder) -> OrderTotals:
        """Recompute totals. The admin flow caches them on the draft."""
        totals = self.calculator_for(draft).calculate(draft.all_items(), draft.discount)
        if draft.flow == OrderFlow.ADMIN:
            draft.totals = totals
        return totals

    def currency_for(self, draft: DraftOrder) -> str:
        if draft.currency:
            return draft.currency
        if draft.flow == OrderFlow.ADMIN:
            return self.settings.admin_currency
        return self.settings.checkout_currency

    async def resolve_address(
        self, draft: DraftOrder, identity: Identity
    ) -> ResolvedAddress:
        """
        Resolve the shipping address to a saved id or an inline object.

        An inline address of a signed-in customer at checkout is saved first
        and the draft switches to the saved reference, so a retry does not
        save it twice.

        Returns:
            Tuple of (saved address id, inline address); exactly one is set
        """
        address = draft.shipping_address
        if address is None:
            raise ValidationError("Please select or enter a shipping address")

        if isinstance(address, SavedAddressRef):
            if isinstance(identity, Guest) and draft.flow == OrderFlow.CHECKOUT:
                raise ValidationError("Please enter your shipping address")
            return address.id, None

        missing = address.missing_fields()
        if missing:
            raise MissingShippingFieldError(missing)

        if draft.flow == OrderFlow.CHECKOUT and isinstance(identity, Authenticated):
            saved_id = await self._persist_address(draft, address)
            draft.shipping_address = SavedAddressRef(id=saved_id)
            return saved_id, None

        return None, address

    async def _persist_address(self, draft: DraftOrder, address: InlineAddress) -> str:
        address_input = AddressInput(
            **address.snapshot(),
            is_default=not draft.has_saved_addresses,
            type="home",
        )
        try:
            saved = await self.gateway.add_address(address_input)
        except GatewayError as e:
            logger.error(f"[CHECKOUT] Failed to save address - Error: {e.message}")
            raise AddressPersistError() from e
        logger.info(f"[CHECKOUT] Inline address saved - Address ID: {saved.id}")
        return saved.id

    def build_payload(
        self,
        draft: DraftOrder,
        identity: Identity,
        shipping: ResolvedAddress,
    ) -> OrderPayload:
        shipping_id, shipping_inline = shipping
        billing_id, billing_inline = shipping_id, shipping_inline
        billing = draft.billing_address
        if isinstance(billing, SavedAddressRef):
            billing_id, billing_inline = billing.id, None
        elif isinstance(billing, InlineAddress) and not billing.missing_fields():
            billing_id, billing_inline = None, billing

        totals = self.quote(draft)
        payload = OrderPayload(
            payment_method=draft.payment_method,
            notes=draft.notes,
            shipping_address_id=shipping_id,
            billing_address_id=billing_id,
            shipping_address=shipping_inline,
            billing_address=billing_inline,
            items=[OrderLine.from_line_item(item) for item in draft.all_items()],
            subtotal=totals.subtotal,
            tax=totals.tax,
            shipping=totals.shipping,
            discount=totals.discount,
            total=totals.total,
            currency=self.currency_for(draft),
        )

        if draft.flow == OrderFlow.ADMIN:
            payload.customer_id = draft.customer_id
            payload.payment_status = draft.payment_status
            payload.order_status = draft.order_status
        else:
            payload.shipping_option = draft.shipping_option
            if isinstance(identity, Guest) and draft.contact_email:
                payload.guest_email = draft.contact_email
        return payload

    async def _create_order(
        self, draft: DraftOrder, payload: OrderPayload
    ) -> OrderConfirmation:
        try:
            return await self.gateway.create_order(
                payload,
                admin=draft.flow == OrderFlow.ADMIN,
                idempotency_key=draft.idempotency_key,
            )
        except GatewayError as e:
            raise OrderCreateError(e.message, e.field_errors) from e

    async def _create_invoice(self, order_id: str) -> InvoiceSummary:
        try:
            return await self.gateway.create_invoice(order_id)
        except GatewayError as e:
            raise InvoiceCreateError(e.message) from e

    async def _clear_cart(self, cart_source: CartSource) -> bool:
        try:
            await cart_source.clear()
        except Exception as e:
            logger.error(
                f"[CHECKOUT] Order placed but cart could not be cleared - "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True
            )
            return False
        return True

    def _validate_items(self, draft: DraftOrder) -> None:
        if not draft.items and not draft.custom_items:
            raise ValidationError("At least one item is required")
        if draft.flow == OrderFlow.ADMIN and not draft.customer_id:
            raise ValidationError("Customer is required")

    async def submit(
        self,
        draft: DraftOrder,
        identity: Identity,
        cart_source: Optional[CartSource] = None,
    ) -> SubmissionResult:
        """
        Submit a draft order.

        Args:
            draft: Draft built from the checkout page or the admin form
            identity: Who is submitting
            cart_source: Cart to clear on success. Checkout defaults to the
                identity's cart; the admin flow has none unless given

        Returns:
            SubmissionResult with notices for every outcome
        """
        if cart_source is None and draft.flow == OrderFlow.CHECKOUT and self.cart_selector:
            cart_source = self.cart_selector.source_for(identity)

        logger.info(
            f"[CHECKOUT] Submitting order - Flow: {draft.flow.value}, "
            f"Identity: {identity.kind}, Items: {len(draft.all_items())}, "
            f"Idempotency key: {draft.idempotency_key}"
        )

        try:
            self._validate_items(draft)
            address = await self.resolve_address(draft, identity)
            payload = self.build_payload(draft, identity, address)
            confirmation = await self._create_order(draft, payload)
        except CheckoutError as e:
            logger.warning(
                f"[CHECKOUT] Submission failed - Code: {e.code}, Messages: {e.messages()}"
            )
            return SubmissionResult.failed(e)

        logger.info(
            f"[CHECKOUT] Order created - Order ID: {confirmation.order_id}, "
            f"Number: {confirmation.order_number}, Total: {confirmation.total}"
        )

        notices: List[Notice] = []
        cart_cleared = False
        if cart_source is not None:
            cart_cleared = await self._clear_cart(cart_source)

        invoice = None
        if draft.flow == OrderFlow.ADMIN and draft.create_invoice:
            try:
                invoice = await self._create_invoice(confirmation.order_id)
                notices.append(Notice.success("Order and invoice created successfully!"))
            except InvoiceCreateError as e:
                logger.error(
                    f"[CHECKOUT] Invoice creation failed - Order ID: "
                    f"{confirmation.order_id}, Error: {e.message}"
                )
                notices.append(Notice.success("Order created successfully!"))
                notices.append(Notice.warning(e.message))
        elif draft.flow == OrderFlow.ADMIN:
            notices.append(Notice.success("Order created successfully!"))
        else:
            notices.append(Notice.success("Order placed successfully!"))

        if draft.flow == OrderFlow.ADMIN:
            redirect_to = f"/admin/orders/{confirmation.order_id}"
        else:
            redirect_to = (
                f"/order-confirmation?orderId={confirmation.order_id}"
                f"&orderNumber={confirmation.order_number}"
            )

        return SubmissionResult(
            success=True,
            confirmation=confirmation,
            invoice=invoice,
            notices=notices,
            redirect_to=redirect_to,
            cart_cleared=cart_cleared,
        )
