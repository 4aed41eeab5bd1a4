"""Automation engine reached through an HTTP bridge sidecar.

The bridge runs the browser-based messaging client and exposes one REST
resource per session plus an NDJSON event stream.
"""

import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from urllib.parse import quote

import httpx

from wa_gateway.domain.media import MediaPayload
from wa_gateway.services.engine import (
    AutomationEngine,
    EngineChat,
    EngineEvent,
    EngineEventKind,
    EngineHandle,
    serialized_message_id,
)

_logger = logging.getLogger(__name__)

# One open stream per session; the session count has no upper bound.
STREAM_LIMITS = httpx.Limits(max_connections=None, max_keepalive_connections=None)


def _segment(value: str) -> str:
    return quote(value, safe="@")


@dataclass
class BridgeChat(EngineChat):
    """Chat resource exposed by the bridge."""

    id: str
    session_url: str
    http_client: httpx.AsyncClient

    async def fetch_messages(self, limit: int | None = None) -> list[dict[str, object]]:
        """Fetch recent messages of the chat."""
        params = {"limit": limit} if limit is not None else None
        response = await self.http_client.get(
            f"{self.session_url}/chats/{_segment(self.id)}/messages",
            params=params,
            timeout=30,
        )
        response.raise_for_status()
        return response.json().get("messages", [])

    async def react(self, message_id: str, reaction: str) -> None:
        """React to a message of the chat."""
        response = await self.http_client.post(
            f"{self.session_url}/chats/{_segment(self.id)}"
            f"/messages/{_segment(message_id)}/reaction",
            json={"reaction": reaction},
            timeout=15,
        )
        response.raise_for_status()


@dataclass
class BridgeSessionHandle(EngineHandle):
    """Handle on one bridge session."""

    session_id: str
    base_url: str
    http_client: httpx.AsyncClient
    stream_client: httpx.AsyncClient
    _info: dict[str, object] | None = field(default=None, init=False)

    @property
    def session_url(self) -> str:
        return f"{self.base_url}/sessions/{_segment(self.session_id)}"

    @property
    def info(self) -> dict[str, object] | None:
        return self._info

    async def events(self) -> AsyncIterator[EngineEvent]:
        """Stream events; authenticated info is tracked as they pass.

        The bridge replays the current session state when a stream opens, so
        info is reset whenever the stream ends.
        """
        try:
            async with self.stream_client.stream(
                "GET", f"{self.session_url}/events", timeout=None
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    event = _parse_event(line)
                    if event is None:
                        continue
                    if event.kind is EngineEventKind.READY:
                        self._info = event.data if isinstance(event.data, dict) else {}
                    elif event.kind in {
                        EngineEventKind.DISCONNECTED,
                        EngineEventKind.AUTH_FAILURE,
                    }:
                        self._info = None
                    yield event
        finally:
            self._info = None

    async def destroy(self) -> None:
        """Stop the bridge session."""
        response = await self.http_client.delete(self.session_url, timeout=30)
        response.raise_for_status()
        self._info = None

    async def send_message(
        self,
        to: str,
        content: str | MediaPayload,
        options: dict[str, object] | None = None,
    ) -> dict[str, object]:
        """Send text or media through the bridge."""
        payload: dict[str, object] = {"to": to, "options": options or {}}
        if isinstance(content, MediaPayload):
            payload["media"] = content.model_dump()
        else:
            payload["content"] = content
        response = await self.http_client.post(
            f"{self.session_url}/messages", json=payload, timeout=60
        )
        response.raise_for_status()
        return response.json().get("message", {})

    async def get_contacts(self) -> list[dict[str, object]]:
        """Return the contacts known to the session."""
        response = await self.http_client.get(f"{self.session_url}/contacts", timeout=30)
        response.raise_for_status()
        return response.json().get("contacts", [])

    async def get_chat_by_id(self, chat_id: str) -> BridgeChat | None:
        """Resolve a chat; the bridge answers 404 for unknown chats."""
        response = await self.http_client.get(
            f"{self.session_url}/chats/{_segment(chat_id)}", timeout=15
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        return BridgeChat(
            id=chat_id, session_url=self.session_url, http_client=self.http_client
        )

    async def download_media(self, message: dict[str, object]) -> MediaPayload | None:
        """Download media attached to a received message."""
        message_id = serialized_message_id(message)
        if message_id is None:
            return None
        response = await self.http_client.get(
            f"{self.session_url}/messages/{_segment(message_id)}/media", timeout=60
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        media = response.json().get("media")
        return MediaPayload.model_validate(media) if media else None


@dataclass
class BridgeEngine(AutomationEngine):
    """Starts sessions on the bridge sidecar.

    Every live session holds one event stream open, so streams get their own
    client without a connection cap and never starve command requests.
    """

    base_url: str
    http_client: httpx.AsyncClient
    stream_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str) -> "BridgeEngine":
        """Create a bridge engine with managed httpx sessions."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            stream_client=httpx.AsyncClient(limits=STREAM_LIMITS),
        )

    async def start(self, session_id: str, auth_path: str) -> BridgeSessionHandle:
        """Launch a session on the bridge and return its handle."""
        handle = BridgeSessionHandle(
            session_id=session_id,
            base_url=self.base_url,
            http_client=self.http_client,
            stream_client=self.stream_client,
        )
        response = await self.http_client.post(
            handle.session_url, json={"auth_path": auth_path}, timeout=120
        )
        response.raise_for_status()
        _logger.info("Bridge session %s started", session_id)
        return handle

    async def close(self) -> None:
        """Close the underlying HTTP sessions."""
        await self.http_client.aclose()
        await self.stream_client.aclose()


def _parse_event(line: str) -> EngineEvent | None:
    """Parse one NDJSON line of the event stream."""
    if not line.strip():
        return None
    try:
        payload = json.loads(line)
        kind = EngineEventKind(payload.get("event"))
    except (json.JSONDecodeError, ValueError, AttributeError):
        _logger.debug("Skipping unrecognized bridge event: %s", line)
        return None
    return EngineEvent(kind=kind, data=payload.get("data"))
