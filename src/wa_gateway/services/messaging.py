"""Messaging operations delegated to live client sessions."""

import contextlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass

from wa_gateway.domain.errors import EngineError, GatewayError, NotFoundError, NotReadyError
from wa_gateway.domain.media import MediaPayload
from wa_gateway.domain.sessions import SessionState
from wa_gateway.services.engine import EngineChat, serialized_message_id
from wa_gateway.services.lifecycle import SessionHandle, SessionManager
from wa_gateway.services.transcoding import VOICE_NOTE_MIME_TYPE, AudioTranscoder

_logger = logging.getLogger(__name__)

# Reactions look the target message up among the most recent messages only.
REACTION_SEARCH_LIMIT = 50


@dataclass
class MessagingService:
    """Public messaging operations; every call requires a live session."""

    manager: SessionManager
    transcoder: AudioTranscoder

    async def send_text(self, session_id: str, to: str, body: str) -> dict[str, object]:
        """Send a text message once the client has passed QR authentication."""
        handle = self.manager.get_handle(session_id)
        if self.manager.status(session_id) is SessionState.QR_PENDING:
            raise NotReadyError(
                f"Client {session_id} is not ready to send messages. "
                "Scan the QR code first."
            )
        sent = await self._send(handle, to, body)
        _logger.info("Message sent to %s from client %s", to, session_id)
        return sent

    async def send_media(
        self,
        session_id: str,
        to: str,
        media: MediaPayload,
        caption: str | None = None,
    ) -> dict[str, object]:
        """Send a media message with an optional caption."""
        handle = self.manager.get_handle(session_id)
        options: dict[str, object] = {}
        if caption is not None:
            options["caption"] = caption
        sent = await self._send(handle, to, media, options)
        _logger.info("Media sent to %s from client %s", to, session_id)
        return sent

    async def send_voice_note(
        self, session_id: str, to: str, mime_type: str, audio_base64: str
    ) -> dict[str, object]:
        """Convert audio to OGG/Opus and send it as a voice note.

        Conversion failures propagate unchanged so callers see why the
        audio was rejected.
        """
        handle = self.manager.get_handle(session_id)
        converted = await self.transcoder.transcode(mime_type, audio_base64)
        media = MediaPayload(mimetype=VOICE_NOTE_MIME_TYPE, data=converted)
        sent = await self._send(handle, to, media, {"sendAudioAsVoice": True})
        _logger.info("Voice note sent to %s from client %s", to, session_id)
        return sent

    async def get_contacts(self, session_id: str) -> list[dict[str, object]]:
        handle = self.manager.get_handle(session_id)
        with _engine_errors(f"Failed to list contacts for client {session_id}"):
            return await handle.engine.get_contacts()

    async def get_chat_history(
        self, session_id: str, chat_id: str, limit: int | None = None
    ) -> list[dict[str, object]]:
        """Return messages of a chat; the limit is passed to the engine as-is."""
        handle = self.manager.get_handle(session_id)
        chat = await self._resolve_chat(handle, chat_id)
        with _engine_errors(f"Failed to fetch messages of chat {chat_id}"):
            return await chat.fetch_messages(limit=limit)

    async def react_to_message(
        self, session_id: str, chat_id: str, message_id: str, reaction: str
    ) -> None:
        """React to one of the recent messages of a chat."""
        handle = self.manager.get_handle(session_id)
        chat = await self._resolve_chat(handle, chat_id)
        with _engine_errors(f"Failed to fetch messages of chat {chat_id}"):
            recent = await chat.fetch_messages(limit=REACTION_SEARCH_LIMIT)
        if not any(serialized_message_id(message) == message_id for message in recent):
            raise NotFoundError(f"Message {message_id} not found in chat {chat_id}.")
        with _engine_errors(f"Failed to react to message {message_id}"):
            await chat.react(message_id, reaction)
        _logger.info("Reacted to message %s from client %s", message_id, session_id)

    async def _resolve_chat(self, handle: SessionHandle, chat_id: str) -> EngineChat:
        with _engine_errors(f"Failed to resolve chat {chat_id}"):
            chat = await handle.engine.get_chat_by_id(chat_id)
        if chat is None:
            raise NotFoundError(f"Chat {chat_id} not found.")
        return chat

    async def _send(
        self,
        handle: SessionHandle,
        to: str,
        content: str | MediaPayload,
        options: dict[str, object] | None = None,
    ) -> dict[str, object]:
        with _engine_errors(f"Failed to send to {to} from client {handle.id}"):
            return await handle.engine.send_message(to, content, options)


@contextlib.contextmanager
def _engine_errors(context: str) -> Iterator[None]:
    """Wrap unexpected engine failures in EngineError."""
    try:
        yield
    except GatewayError:
        raise
    except Exception as exc:
        _logger.exception(context)
        raise EngineError(f"{context}: {exc}") from exc
