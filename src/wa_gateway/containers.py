"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from supabase import create_client

from wa_gateway.adapters.bridge_engine import BridgeEngine
from wa_gateway.adapters.ffmpeg_transcoder import FfmpegTranscoder
from wa_gateway.adapters.qr_renderer import render_qr_data_url
from wa_gateway.adapters.supabase_client_repository import SupabaseClientRepository
from wa_gateway.adapters.webhook_client import HttpxWebhookClient
from wa_gateway.config import Settings
from wa_gateway.services.lifecycle import SessionManager
from wa_gateway.services.messaging import MessagingService
from wa_gateway.services.webhooks import WebhookDispatcher


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    webhook_dispatcher: WebhookDispatcher
    session_manager: SessionManager
    messaging_service: MessagingService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    client_repository = SupabaseClientRepository(supabase_client)
    webhook_client = HttpxWebhookClient.create(
        timeout_seconds=resolved_settings.webhook_timeout_seconds
    )
    webhook_dispatcher = WebhookDispatcher(
        repository=client_repository,
        client=webhook_client,
        max_attempts=resolved_settings.webhook_max_attempts,
        retry_base_seconds=resolved_settings.webhook_retry_base_seconds,
        delimiter=resolved_settings.webhook_delimiter,
    )
    engine = BridgeEngine.create(resolved_settings.bridge_url)
    session_manager = SessionManager(
        repository=client_repository,
        engine=engine,
        dispatcher=webhook_dispatcher,
        render_qr=render_qr_data_url,
        auth_data_path=Path(resolved_settings.auth_data_path),
        reconnect_base_seconds=resolved_settings.engine_reconnect_base_seconds,
        reconnect_max_seconds=resolved_settings.engine_reconnect_max_seconds,
    )
    messaging_service = MessagingService(
        manager=session_manager,
        transcoder=FfmpegTranscoder(ffmpeg_path=resolved_settings.ffmpeg_path),
    )

    async def close_resources() -> None:
        await webhook_client.close()
        await engine.close()

    return AppContainer(
        settings=resolved_settings,
        webhook_dispatcher=webhook_dispatcher,
        session_manager=session_manager,
        messaging_service=messaging_service,
        close_resources=close_resources,
    )
