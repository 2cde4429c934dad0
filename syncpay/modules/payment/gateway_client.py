import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from syncpay.core.config import GatewayConfig
from syncpay.core.exceptions import GatewayError

logger = logging.getLogger(__name__)


@dataclass
class GatewayOrder:
    id: str
    amount: int
    currency: str
    receipt: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[int] = None
    attempts: int = 0
    notes: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict) -> "GatewayOrder":
        notes = data.get("notes") or {}
        if not isinstance(notes, dict):
            notes = {}
        return cls(
            id=data["id"],
            amount=data.get("amount", 0),
            currency=data.get("currency", ""),
            receipt=data.get("receipt"),
            status=data.get("status"),
            created_at=data.get("created_at"),
            attempts=data.get("attempts") or 0,
            notes=notes,
        )


class RazorpayClient:
    """Thin async client for the Razorpay Orders API."""

    def __init__(self, config: GatewayConfig, transport: httpx.AsyncBaseTransport = None):
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.api_base,
            auth=(self.config.key_id, self.config.key_secret),
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"Gateway timeout on {method} {path}: {e}")
            raise GatewayError("Payment gateway timed out, please retry")
        except httpx.HTTPStatusError as e:
            logger.error(f"Gateway returned {e.response.status_code} on {method} {path}: {e.response.text}")
            raise GatewayError(f"Payment gateway rejected the request ({e.response.status_code})")
        except httpx.HTTPError as e:
            logger.error(f"Gateway transport error on {method} {path}: {e}")
            raise GatewayError("Payment gateway is unreachable, please retry")
        except ValueError as e:
            logger.error(f"Gateway sent a non-JSON body on {method} {path}: {e}")
            raise GatewayError("Payment gateway sent an unreadable response")

    async def create_order(self, amount: int, currency: str, receipt: str, notes: dict = None) -> GatewayOrder:
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        data = await self._request("POST", "/orders", json=payload)
        if not data.get("id"):
            raise GatewayError("Payment gateway did not return an order id")
        return GatewayOrder.from_payload(data)

    async def fetch_order(self, order_id: str) -> GatewayOrder:
        data = await self._request("GET", f"/orders/{order_id}")
        return GatewayOrder.from_payload(data)

    async def list_orders(self, created_from: int, created_to: int, count: int = 100) -> List[GatewayOrder]:
        """Lists orders created in ``[created_from, created_to]`` (unix seconds), following pagination."""
        orders: List[GatewayOrder] = []
        skip = 0
        while True:
            data = await self._request(
                "GET",
                "/orders",
                params={"from": created_from, "to": created_to, "count": count, "skip": skip},
            )
            items = data.get("items") or []
            orders.extend(GatewayOrder.from_payload(item) for item in items)
            if len(items) < count:
                return orders
            skip += count
