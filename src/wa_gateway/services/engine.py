"""Interfaces for the session automation engine."""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from wa_gateway.domain.media import MediaPayload


class EngineEventKind(str, Enum):
    """Event categories raised by an engine handle."""

    QR = "qr"
    READY = "ready"
    MESSAGE = "message"
    DISCONNECTED = "disconnected"
    AUTH_FAILURE = "auth_failure"
    CHANGE_STATE = "change_state"


@dataclass(frozen=True)
class EngineEvent:
    """Single event pushed by the engine.

    ``data`` depends on ``kind``: the raw QR string for ``qr``, the message
    dict for ``message``, the reason for ``disconnected``, the error text for
    ``auth_failure``, the new state (possibly None) for ``change_state`` and
    the account info dict for ``ready``.
    """

    kind: EngineEventKind
    data: object = None


class EngineChat(Protocol):
    """Chat resolved through an engine handle."""

    id: str

    async def fetch_messages(self, limit: int | None = None) -> list[dict[str, object]]:
        """Return the latest messages of the chat."""

    async def react(self, message_id: str, reaction: str) -> None:
        """React to a message of the chat."""


class EngineHandle(Protocol):
    """Live connection to one authenticated messaging identity."""

    session_id: str

    @property
    def info(self) -> dict[str, object] | None:
        """Account info; not None once the session is authenticated."""

    def events(self) -> AsyncIterator[EngineEvent]:
        """Iterate events in the order the engine raises them."""

    async def destroy(self) -> None:
        """Close the connection and release engine resources."""

    async def send_message(
        self,
        to: str,
        content: str | MediaPayload,
        options: dict[str, object] | None = None,
    ) -> dict[str, object]:
        """Send text or media and return the created message."""

    async def get_contacts(self) -> list[dict[str, object]]:
        """Return the contact list."""

    async def get_chat_by_id(self, chat_id: str) -> EngineChat | None:
        """Resolve a chat by id."""

    async def download_media(self, message: dict[str, object]) -> MediaPayload | None:
        """Download media attached to a received message."""


class AutomationEngine(Protocol):
    """Factory for engine handles."""

    async def start(self, session_id: str, auth_path: str) -> EngineHandle:
        """Start a session whose auth material lives under ``auth_path``."""


def serialized_message_id(message: dict[str, object]) -> str | None:
    """Return the serialized id of an engine message dict."""
    message_id = message.get("id")
    if isinstance(message_id, dict):
        serialized = message_id.get("_serialized")
        return str(serialized) if serialized is not None else None
    if message_id is None:
        return None
    return str(message_id)
