import hashlib
import hmac
import httpx
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from app.errors import GatewayError

logger = logging.getLogger(__name__)

class PaystackClient:
    """
    Thin async wrapper around the Paystack transaction API.

    Built once at startup and shared read-only across requests.
    """

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.paystack.co",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self._http_client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Content-Type": "application/json",
            },
        )

    async def close(self) -> None:
        await self._http_client.aclose()

    async def _request(self, method: str, path: str, body: Optional[dict] = None) -> Dict[str, Any]:
        try:
            response = await self._http_client.request(method, path, json=body)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            try:
                payload = e.response.json()
            except ValueError:
                payload = e.response.text
            logger.error(f"[Paystack] {method} {path} failed: {e.response.status_code} - {payload}")
            raise GatewayError(str(e), payload=payload) from e
        except httpx.HTTPError as e:
            logger.error(f"[Paystack] {method} {path} failed: {str(e)}")
            raise GatewayError(str(e) or e.__class__.__name__) from e
        except ValueError as e:
            logger.error(f"[Paystack] {method} {path} returned invalid JSON")
            raise GatewayError("Invalid response from payment gateway") from e

    async def initialize_transaction(self, email: str, amount: int, metadata: Dict[str, Any]) -> Dict[str, Any]:
        """Start a hosted checkout; amount is in minor units (cents)."""
        body = {"email": email, "amount": amount, "metadata": metadata}
        return await self._request("POST", "/transaction/initialize", body)

    async def verify_transaction(self, reference: str) -> Dict[str, Any]:
        return await self._request("GET", f"/transaction/verify/{quote(reference, safe='')}")

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """Check x-paystack-signature: hex HMAC-SHA512 of the raw body."""
        if not signature or not self.secret_key:
            return False
        expected = hmac.new(self.secret_key.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()
        return hmac.compare_digest(expected.encode("ascii"), signature.strip().lower().encode("utf-8"))
