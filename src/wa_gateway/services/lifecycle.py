"""Lifecycle management for concurrently running client sessions."""

import asyncio
import contextlib
import logging
import shutil
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

from wa_gateway.domain.clients import ClientSummary, SessionRecord
from wa_gateway.domain.errors import (
    ConflictError,
    EngineError,
    GatewayError,
    NotFoundError,
)
from wa_gateway.domain.events import MessagePayload, ReceivedMedia, WebhookEvent
from wa_gateway.domain.media import MediaPayload
from wa_gateway.domain.sessions import KNOWN_ENGINE_STATES, QRArtifact, SessionState
from wa_gateway.services.clients import ClientRepository
from wa_gateway.services.engine import (
    AutomationEngine,
    EngineEvent,
    EngineEventKind,
    EngineHandle,
)
from wa_gateway.services.qr_cache import QrCache
from wa_gateway.services.webhooks import WebhookDispatcher

_logger = logging.getLogger(__name__)


@dataclass
class SessionHandle:
    """Live engine handle plus the transient state tracked for it."""

    id: str
    engine: EngineHandle
    current_state: SessionState = SessionState.INITIALIZING
    engine_state: str | None = None
    engine_state_reported: bool = False
    disconnect_reason: str | None = None
    stream_lost: bool = False
    consumer: asyncio.Task[None] | None = None


@dataclass
class SessionManager:
    """Owns the mapping from client id to live session and mediates transitions.

    The registry is the source of truth for which clients should exist; the
    handle map and the QR cache only live for the process lifetime. All
    mutations of the in-memory maps happen on the event loop between awaits.
    """

    repository: ClientRepository
    engine: AutomationEngine
    dispatcher: WebhookDispatcher
    render_qr: Callable[[str], str]
    auth_data_path: Path
    qr_cache: QrCache = field(default_factory=QrCache)
    reconnect_base_seconds: float = 1.0
    reconnect_max_seconds: float = 30.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    _handles: dict[str, SessionHandle] = field(default_factory=dict, init=False)
    _starting: set[str] = field(default_factory=set, init=False)

    async def initialize(self) -> list[str]:
        """Restore a session for every registered client.

        Returns the ids that failed to start; a failure never stops the
        remaining restorations.
        """
        records = await asyncio.to_thread(self.repository.list_all)
        failed: list[str] = []
        for record in records:
            try:
                await self._start_handle(record.id)
            except Exception:
                _logger.exception("Failed to restore client %s", record.id)
                failed.append(record.id)
        _logger.info(
            "Restored %s of %s clients", len(records) - len(failed), len(records)
        )
        return failed

    async def add_session(self, session_id: str, webhook_url: str) -> SessionRecord:
        """Register a client and start its session, all or nothing."""
        existing = await asyncio.to_thread(self.repository.get_by_id, session_id)
        if existing is not None:
            raise ConflictError(f"Client {session_id} already exists.")

        record = await asyncio.to_thread(
            self.repository.create,
            SessionRecord(id=session_id, webhook_url=webhook_url),
        )
        _logger.info("Client %s saved to the registry", session_id)
        try:
            await self._start_handle(session_id)
        except Exception as exc:
            _logger.exception("Failed to start client %s, rolling back", session_id)
            await asyncio.to_thread(self.repository.delete, session_id)
            if isinstance(exc, GatewayError):
                raise
            raise EngineError(f"Failed to start client {session_id}: {exc}") from exc
        _logger.info("Client %s started", session_id)
        return record

    async def restore_sessions(self, configs: list[SessionRecord]) -> list[str]:
        """Ensure each config is registered and started; return failed ids."""
        failed: list[str] = []
        for config in configs:
            try:
                existing = await asyncio.to_thread(self.repository.get_by_id, config.id)
                if existing is None:
                    await asyncio.to_thread(self.repository.create, config)
                    _logger.info("Client %s saved to the registry", config.id)
                await self._start_handle(config.id)
            except Exception:
                _logger.exception("Failed to restore client %s", config.id)
                failed.append(config.id)
        return failed

    async def remove_session(self, session_id: str) -> None:
        """Tear down a session and erase its durable state and auth material."""
        handle = self._handles.get(session_id)
        record = await asyncio.to_thread(self.repository.get_by_id, session_id)
        if handle is not None:
            try:
                await handle.engine.destroy()
            except Exception as exc:
                _logger.exception("Failed to destroy client %s", session_id)
                raise EngineError(f"Failed to destroy client {session_id}: {exc}") from exc
            await _cancel_consumer(handle)
            self._handles.pop(session_id, None)

        await asyncio.to_thread(self.repository.delete, session_id)
        self.qr_cache.delete(session_id)
        await asyncio.to_thread(self._erase_auth_material, session_id)
        if handle is None and record is None:
            raise NotFoundError(f"Client {session_id} not found.")
        _logger.info("Client %s removed", session_id)

    def status(self, session_id: str) -> SessionState:
        """Derive the current state of a live session."""
        handle = self.get_handle(session_id)
        if self.qr_cache.has(session_id):
            return SessionState.QR_PENDING
        if handle.engine.info is not None:
            return SessionState.READY
        # The engine reports a null or unrecognized state while it waits for
        # a QR scan; surface it as pending rather than as an error.
        if handle.engine_state_reported and (
            handle.engine_state not in KNOWN_ENGINE_STATES
        ):
            return SessionState.QR_PENDING
        if handle.current_state in {
            SessionState.DISCONNECTED,
            SessionState.AUTH_FAILED,
        }:
            return handle.current_state
        return SessionState.INITIALIZING

    def get_handle(self, session_id: str) -> SessionHandle:
        """Return the live handle or raise NotFoundError."""
        handle = self._handles.get(session_id)
        if handle is None:
            raise NotFoundError(f"Client {session_id} not found.")
        return handle

    def has_session(self, session_id: str) -> bool:
        return session_id in self._handles

    def get_qr(self, session_id: str) -> QRArtifact | None:
        return self.qr_cache.get(session_id)

    async def set_webhook(self, session_id: str, webhook_url: str) -> None:
        """Replace the webhook destination of a live client."""
        self.get_handle(session_id)
        await asyncio.to_thread(self.repository.update_webhook, session_id, webhook_url)
        _logger.info("Webhook configured for client %s: %s", session_id, webhook_url)

    async def get_webhook_url(self, session_id: str) -> str | None:
        record = await asyncio.to_thread(self.repository.get_by_id, session_id)
        return record.webhook_url if record else None

    async def list_clients(self) -> list[ClientSummary]:
        """List registered clients with their QR and current status."""
        records = await asyncio.to_thread(self.repository.list_all)
        summaries = []
        for record in records:
            artifact = self.qr_cache.get(record.id)
            status = (
                self.status(record.id)
                if record.id in self._handles
                else SessionState.INITIALIZING
            )
            summaries.append(
                ClientSummary(
                    id=record.id,
                    webhook_url=record.webhook_url,
                    qr=artifact.image_data if artifact else None,
                    status=status.value,
                )
            )
        return summaries

    async def shutdown(self) -> None:
        """Detach and destroy every live session, keeping the registry intact."""
        for session_id, handle in list(self._handles.items()):
            await _cancel_consumer(handle)
            try:
                await handle.engine.destroy()
            except Exception:
                _logger.exception("Failed to destroy client %s on shutdown", session_id)
            self._handles.pop(session_id, None)
            self.qr_cache.delete(session_id)

    def session_auth_dir(self, session_id: str) -> Path:
        return self.auth_data_path / f"session-{session_id}"

    async def _start_handle(self, session_id: str) -> SessionHandle | None:
        if session_id in self._handles or session_id in self._starting:
            _logger.warning("Client %s is already initialized", session_id)
            return self._handles.get(session_id)

        self._starting.add(session_id)
        try:
            engine_handle = await self.engine.start(
                session_id, str(self.auth_data_path)
            )
        finally:
            self._starting.discard(session_id)

        handle = SessionHandle(id=session_id, engine=engine_handle)
        self._handles[session_id] = handle
        handle.consumer = asyncio.create_task(
            self._consume(handle), name=f"session-events:{session_id}"
        )
        return handle

    async def _consume(self, handle: SessionHandle) -> None:
        """Process engine events for one session in the order they arrive.

        A lost stream marks the session disconnected and is reopened with a
        linear backoff until the consumer is cancelled.
        """
        attempt = 0
        while True:
            try:
                async for event in handle.engine.events():
                    attempt = 0
                    handle.stream_lost = False
                    try:
                        await self._handle_event(handle, event)
                    except Exception:
                        _logger.exception(
                            "Failed to handle %s event for client %s",
                            event.kind.value,
                            handle.id,
                        )
                reason = "Event stream closed"
                _logger.warning("Event stream for client %s closed", handle.id)
            except Exception as exc:
                reason = f"Event stream failed: {exc}"
                _logger.exception("Event stream for client %s failed", handle.id)

            if not handle.stream_lost:
                handle.stream_lost = True
                await self._report_stream_lost(handle, reason)
            attempt += 1
            delay = min(attempt * self.reconnect_base_seconds, self.reconnect_max_seconds)
            _logger.info(
                "Reopening event stream for client %s in %ss", handle.id, delay
            )
            await self.sleep(delay)

    async def _report_stream_lost(self, handle: SessionHandle, reason: str) -> None:
        # A QR or engine state seen before the loss is stale.
        self.qr_cache.delete(handle.id)
        handle.engine_state_reported = False
        try:
            await self._handle_event(
                handle, EngineEvent(kind=EngineEventKind.DISCONNECTED, data=reason)
            )
        except Exception:
            _logger.exception("Failed to report lost stream for client %s", handle.id)

    async def _handle_event(self, handle: SessionHandle, event: EngineEvent) -> None:
        session_id = handle.id
        if event.kind is EngineEventKind.QR:
            _logger.info("QR received for client %s", session_id)
            image_data = await asyncio.to_thread(self.render_qr, str(event.data))
            self.qr_cache.set(session_id, image_data)
            handle.current_state = SessionState.QR_PENDING
            webhook_event = WebhookEvent.qr(session_id, image_data)
        elif event.kind is EngineEventKind.READY:
            _logger.info("Client %s is ready", session_id)
            self.qr_cache.delete(session_id)
            handle.current_state = SessionState.READY
            handle.engine_state_reported = False
            handle.disconnect_reason = None
            webhook_event = WebhookEvent.ready(session_id)
        elif event.kind is EngineEventKind.MESSAGE:
            message = event.data if isinstance(event.data, dict) else {}
            _logger.info("Message received by client %s", session_id)
            media = await self._download_media(handle, message)
            webhook_event = WebhookEvent.message_received(
                session_id, _message_payload(session_id, message, media)
            )
        elif event.kind is EngineEventKind.DISCONNECTED:
            reason = _optional_str(event.data)
            _logger.info("Client %s disconnected: %s", session_id, reason)
            handle.current_state = SessionState.DISCONNECTED
            handle.disconnect_reason = reason
            webhook_event = WebhookEvent.disconnected(session_id, reason)
        elif event.kind is EngineEventKind.AUTH_FAILURE:
            message_text = _optional_str(event.data)
            _logger.error("Authentication failed for client %s: %s", session_id, message_text)
            handle.current_state = SessionState.AUTH_FAILED
            webhook_event = WebhookEvent.auth_failure(session_id, message_text)
        else:
            state = _optional_str(event.data)
            _logger.info("Client %s state: %s", session_id, state)
            handle.engine_state = state
            handle.engine_state_reported = True
            webhook_event = WebhookEvent.state_changed(session_id, state)

        await self.dispatcher.dispatch(session_id, webhook_event)

    async def _download_media(
        self, handle: SessionHandle, message: dict[str, object]
    ) -> MediaPayload | None:
        if not message.get("hasMedia"):
            return None
        try:
            return await handle.engine.download_media(message)
        except Exception:
            _logger.exception("Failed to download media for client %s", handle.id)
            return None

    def _erase_auth_material(self, session_id: str) -> None:
        session_dir = self.session_auth_dir(session_id)
        if session_dir.exists():
            shutil.rmtree(session_dir)
            _logger.info("Auth material for client %s erased", session_id)


async def _cancel_consumer(handle: SessionHandle) -> None:
    consumer = handle.consumer
    handle.consumer = None
    if consumer is None or consumer.done():
        return
    consumer.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await consumer


def _message_payload(
    session_id: str, message: dict[str, object], media: MediaPayload | None
) -> MessagePayload:
    timestamp = message.get("timestamp")
    return MessagePayload(
        client_id=session_id,
        from_=str(message.get("from") or ""),
        body=str(message.get("body") or ""),
        timestamp=timestamp if isinstance(timestamp, int) else None,
        msg=message,
        media=(
            ReceivedMedia(
                mimetype=media.mimetype,
                data_base_64=media.data,
                filename=media.filename,
            )
            if media
            else None
        ),
    )


def _optional_str(value: object) -> str | None:
    return None if value is None else str(value)
