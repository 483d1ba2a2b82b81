import httpx
import logging
from typing import Any, Dict, Optional

from app.errors import EmailDispatchError

logger = logging.getLogger(__name__)

class EmailClient:
    """
    Sends templated emails through the provider's "send with template" endpoint.
    """

    def __init__(
        self,
        api_token: str,
        sender: str,
        base_url: str = "https://api.postmarkapp.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.sender = sender
        self._http_client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "X-Postmark-Server-Token": api_token,
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    async def close(self) -> None:
        await self._http_client.aclose()

    async def send_template(self, to: str, template: str, model: Dict[str, Any]) -> Dict[str, Any]:
        """
        Sends a templated email. Raises EmailDispatchError on any failure.
        """
        body = {
            "From": self.sender,
            "To": to,
            "TemplateAlias": template,
            "TemplateModel": model,
        }

        try:
            response = await self._http_client.post("/email/withTemplate", json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"[Email] Failed to send '{template}' to {to}: {e.response.text}")
            raise EmailDispatchError(f"Email provider returned {e.response.status_code}", payload=e.response.text) from e
        except httpx.HTTPError as e:
            logger.error(f"[Email] Failed to send '{template}' to {to}: {str(e)}")
            raise EmailDispatchError(str(e) or e.__class__.__name__) from e

        logger.info(f"[Email] Sent template '{template}' to {to}")
        try:
            return response.json()
        except ValueError:
            return {}
