# storefront/services/paypal_service.py
import asyncio
import logging
from typing import Any, Dict, Optional
import aiohttp
from ..config import Config
from ..exceptions import GatewayUnavailable, InvalidAmount, InvalidCapture
from ..models.payment import Capture, CaptureSource, PayPalCapturePayload
from pydantic import ValidationError as PydanticValidationError

class PayPalClient:
    """Minimal PayPal REST client for reading checkout orders"""

    def __init__(self, client_id: str, client_secret: str, api_url: str = None,
                 timeout: float = 10):
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_url = (api_url or Config.PAYPAL_API_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def get_access_token(self, session: aiohttp.ClientSession) -> Dict[str, Any]:
        """Client-credentials OAuth token"""
        async with session.post(
            f"{self.api_url}/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=aiohttp.BasicAuth(self.client_id, self.client_secret)
        ) as response:
            if response.status != 200:
                return {
                    "success": False,
                    "error": f"PayPal authentication failed: {response.status}",
                    "retryable": True
                }
            data = await response.json()

        token = data.get("access_token")
        if not token:
            return {
                "success": False,
                "error": "PayPal returned no access token",
                "retryable": True
            }
        return {"success": True, "token": token}

    async def get_order(self, paypal_order_id: str) -> Dict[str, Any]:
        """Fetch a checkout order as PayPal records it"""
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                auth = await self.get_access_token(session)
                if not auth["success"]:
                    return auth

                async with session.get(
                    f"{self.api_url}/v2/checkout/orders/{paypal_order_id}",
                    headers={"Authorization": f"Bearer {auth['token']}"}
                ) as response:
                    if response.status == 404:
                        return {
                            "success": False,
                            "error": "PayPal order not found",
                            "retryable": False
                        }
                    if response.status != 200:
                        return {
                            "success": False,
                            "error": f"Error fetching PayPal order: {response.status}",
                            "retryable": response.status >= 500
                        }
                    order = await response.json()

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return {
                "success": False,
                "error": f"Error contacting PayPal: {e}",
                "retryable": True
            }

        return {"success": True, "order": order}


class PayPalCaptureVerifier:
    """Replaces client-reported capture details with what PayPal recorded"""

    def __init__(self, client: PayPalClient):
        self.client = client
        self.logger = logging.getLogger(__name__)

    async def verify(self, capture: Capture, order_id: str) -> Capture:
        if capture.source != CaptureSource.PAYPAL:
            return capture

        result = await self.client.get_order(capture.external_id)
        if not result["success"]:
            self.logger.warning(f"PayPal lookup for {capture.external_id} failed: {result['error']}")
            if result.get("retryable"):
                raise GatewayUnavailable()
            raise InvalidCapture(result["error"], field="id")

        try:
            payload = PayPalCapturePayload.model_validate({"source": "paypal", **result["order"]})
        except PydanticValidationError as e:
            raise InvalidCapture(f"Unexpected PayPal order shape: {e.errors()[0].get('msg')}")
        if not payload.references(order_id):
            self.logger.warning(f"PayPal order {capture.external_id} was not created for order {order_id}")
            raise InvalidCapture("PayPal order does not reference this order", field="purchase_units.reference_id")
        try:
            return payload.to_capture()
        except InvalidAmount as e:
            raise InvalidCapture(e.message, field=e.field)


def build_capture_verifier() -> Optional[PayPalCaptureVerifier]:
    """Verifier for the configured PayPal account, if any"""
    if not Config.paypal_enabled():
        return None
    client = PayPalClient(Config.PAYPAL_CLIENT_ID, Config.PAYPAL_CLIENT_SECRET)
    return PayPalCaptureVerifier(client)
