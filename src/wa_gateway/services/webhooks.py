"""Webhook fan-out with bounded retry."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from wa_gateway.domain.errors import DeliveryFailure
from wa_gateway.domain.events import WebhookEvent
from wa_gateway.services.clients import ClientRepository

_logger = logging.getLogger(__name__)


class WebhookClient(Protocol):
    """Outbound HTTP transport for webhook notifications."""

    async def post(self, url: str, body: dict[str, object]) -> None:
        """POST a JSON body; raise on transport errors or non-2xx replies."""


@dataclass
class WebhookDispatcher:
    """Delivers session events to every destination registered for a client.

    Each destination gets its own background task, so a slow or failing
    target never delays its siblings. Delivery is best effort: after
    ``max_attempts`` failures the event is logged and dropped, never
    persisted. A retry of an older event may therefore land after a newer
    event for the same client.
    """

    repository: ClientRepository
    client: WebhookClient
    max_attempts: int = 5
    retry_base_seconds: float = 1.0
    delimiter: str = "|"
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    _tasks: set[asyncio.Task[bool]] = field(default_factory=set, init=False, repr=False)

    async def dispatch(
        self, session_id: str, event: WebhookEvent
    ) -> list[asyncio.Task[bool]]:
        """Spawn one delivery task per destination and return them."""
        record = await asyncio.to_thread(self.repository.get_by_id, session_id)
        if record is None or not record.webhook_url.strip():
            _logger.debug(
                "No webhook configured for client %s, dropping %s event",
                session_id,
                event.type.value,
            )
            return []

        body = event.to_body()
        tasks = []
        for url in split_destinations(record.webhook_url, self.delimiter):
            task = asyncio.create_task(
                self.deliver(url, body), name=f"webhook:{session_id}:{url}"
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            tasks.append(task)
        return tasks

    async def deliver(self, url: str, body: dict[str, object]) -> bool:
        """POST ``body`` to ``url`` with linear backoff; return success."""
        attempt = 0
        last_error = "n/a"
        while attempt < self.max_attempts:
            attempt += 1
            try:
                await self.client.post(url, body)
            except Exception as exc:
                last_error = f"status={_status_code_from_exception(exc)} {exc}"
                _logger.warning(
                    "Webhook %s to %s failed (attempt %s/%s): %s",
                    body.get("type"),
                    url,
                    attempt,
                    self.max_attempts,
                    last_error,
                )
                if attempt < self.max_attempts:
                    await self.sleep(attempt * self.retry_base_seconds)
                continue
            _logger.info("Webhook %s delivered to %s", body.get("type"), url)
            return True

        failure = DeliveryFailure(url, attempt, last_error)
        _logger.error(failure.message)
        return False

    async def drain(self) -> None:
        """Wait for all in-flight deliveries to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def split_destinations(webhook_url: str, delimiter: str = "|") -> list[str]:
    """Split a webhook destination string into individual target URLs."""
    return [part.strip() for part in webhook_url.split(delimiter) if part.strip()]


def _status_code_from_exception(exc: Exception) -> str:
    """Extract HTTP status code from an exception, if available."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"
