"""HTTP transport for webhook notifications."""

from dataclasses import dataclass

import httpx

from wa_gateway.services.webhooks import WebhookClient


@dataclass
class HttpxWebhookClient(WebhookClient):
    """Webhook client implemented with httpx."""

    http_client: httpx.AsyncClient
    timeout_seconds: float = 10.0

    @classmethod
    def create(cls, timeout_seconds: float = 10.0) -> "HttpxWebhookClient":
        """Create a webhook client with a managed httpx session."""
        return cls(http_client=httpx.AsyncClient(), timeout_seconds=timeout_seconds)

    async def post(self, url: str, body: dict[str, object]) -> None:
        """POST a JSON body and fail on non-2xx responses."""
        response = await self.http_client.post(
            url, json=body, timeout=self.timeout_seconds
        )
        response.raise_for_status()

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()
