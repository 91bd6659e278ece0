# storefront/handlers/order_handlers.py
from aiohttp import web
from pydantic import ValidationError as PydanticValidationError
from ..exceptions import ValidationError
from ..models.order import ShippingAddress
from ..models.payment import parse_capture
from ..services.cart_service import PricingPolicy, build_line_items
from ..services.fulfillment_service import FulfillmentService
from ..services.order_service import OrderService
from ..services.payment_service import PaymentService
from .base_handler import BaseHandler

ADDRESS_FIELDS = {
    "address": "address",
    "city": "city",
    "postalCode": "postal_code",
    "country": "country",
}


class OrderHandler(BaseHandler):
    """Order endpoints"""

    def __init__(self, order_service: OrderService, payment_service: PaymentService,
                 fulfillment_service: FulfillmentService, pricing: PricingPolicy):
        self.order_service = order_service
        self.payment_service = payment_service
        self.fulfillment_service = fulfillment_service
        self.pricing = pricing

    async def create_order(self, request: web.Request) -> web.Response:
        """POST /api/orders"""
        identity = self.identity(request)
        body = await self.read_json(request)

        # client-side prices are ignored, totals come from the pricing policy
        items = build_line_items(body.get("orderItems"))
        shipping_address = self._shipping_address(body.get("shippingAddress"))
        payment_method = body.get("paymentMethod")
        if not isinstance(payment_method, str) or not payment_method.strip():
            raise ValidationError("Payment method is required", field="paymentMethod")

        shipping_price, tax_price = self.pricing.quote(items)
        order = await self.order_service.place_order(
            owner_id=identity.user_id,
            items=items,
            shipping_address=shipping_address,
            payment_method=payment_method.strip(),
            shipping_price=shipping_price,
            tax_price=tax_price,
        )
        return self.json_response(order.to_json(), status=201)

    async def get_my_orders(self, request: web.Request) -> web.Response:
        """GET /api/orders/mine"""
        orders = await self.order_service.get_user_orders(self.identity(request))
        return self.json_response([order.to_json() for order in orders])

    async def get_orders(self, request: web.Request) -> web.Response:
        """GET /api/orders"""
        orders = await self.order_service.list_orders(self.identity(request))
        return self.json_response([order.to_json() for order in orders])

    async def get_order(self, request: web.Request) -> web.Response:
        """GET /api/orders/{id}"""
        identity = self.identity(request)
        order = await self.order_service.get_order(request.match_info["id"], identity)
        return self.json_response(order.to_json())

    async def pay_order(self, request: web.Request) -> web.Response:
        """PUT /api/orders/{id}/pay"""
        identity = self.identity(request)
        capture = parse_capture(await self.read_json(request))
        order = await self.payment_service.record_payment(request.match_info["id"], identity, capture)
        return self.json_response(order.to_json())

    async def deliver_order(self, request: web.Request) -> web.Response:
        """PUT /api/orders/{id}/deliver"""
        identity = self.identity(request)
        order = await self.fulfillment_service.mark_delivered(request.match_info["id"], identity)
        return self.json_response(order.to_json())

    @staticmethod
    def _shipping_address(raw) -> ShippingAddress:
        if not isinstance(raw, dict):
            raise ValidationError("Shipping address is required", field="shippingAddress")
        data = {field: raw.get(key) for key, field in ADDRESS_FIELDS.items()}
        try:
            return ShippingAddress.model_validate(data)
        except PydanticValidationError as e:
            loc = e.errors()[0].get("loc") or ("",)
            key = next((k for k, v in ADDRESS_FIELDS.items() if v == loc[0]), loc[0])
            raise ValidationError(f"Invalid shipping address {key}", field=f"shippingAddress.{key}")

    def register(self, app: web.Application):
        app.router.add_post("/api/orders", self.create_order)
        app.router.add_get("/api/orders", self.get_orders)
        app.router.add_get("/api/orders/mine", self.get_my_orders)
        app.router.add_get("/api/orders/{id}", self.get_order)
        app.router.add_put("/api/orders/{id}/pay", self.pay_order)
        app.router.add_put("/api/orders/{id}/deliver", self.deliver_order)
