"""Client lifecycle and messaging endpoints."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import Response

from wa_gateway.adapters.qr_renderer import decode_data_url
from wa_gateway.api.models import (
    CreateClientRequest,
    ReactionRequest,
    SendMediaRequest,
    SendMessageRequest,
    SendVoiceRequest,
    WebhookRequest,
)
from wa_gateway.config import parse_api_keys
from wa_gateway.domain.errors import InvalidInputError, NotFoundError
from wa_gateway.domain.media import MediaPayload
from wa_gateway.domain.sessions import QRArtifact

if TYPE_CHECKING:
    from wa_gateway.containers import AppContainer


def _get_container(request: Request) -> AppContainer:
    return request.app.state.container


def _get_api_keys(request: Request) -> set[str] | None:
    return parse_api_keys(_get_container(request).settings.api_keys)


async def require_api_key(
    x_api_key: str | None = Header(default=None),
    api_keys: set[str] | None = Depends(_get_api_keys),
) -> None:
    """Ensure requests carry an accepted API key when keys are configured."""
    if api_keys is None:
        return
    if not x_api_key or x_api_key not in api_keys:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


router = APIRouter(prefix="/api", tags=["clients"], dependencies=[Depends(require_api_key)])


@router.post("/clients", status_code=status.HTTP_201_CREATED)
async def create_client(body: CreateClientRequest, request: Request) -> dict[str, str]:
    """Register a client and start its session."""
    container = _get_container(request)
    await container.session_manager.add_session(body.id, body.webhook_url)
    return {
        "id": body.id,
        "webhookUrl": body.webhook_url,
        "message": f"Client {body.id} created successfully.",
    }


@router.get("/clients")
async def list_clients(request: Request) -> dict[str, object]:
    """List registered clients with QR and status."""
    summaries = await _get_container(request).session_manager.list_clients()
    return {"clients": [summary.as_dict() for summary in summaries]}


@router.get("/clients/{client_id}/status")
async def client_status(client_id: str, request: Request) -> dict[str, str]:
    state = _get_container(request).session_manager.status(client_id)
    return {"id": client_id, "status": state.value}


@router.delete("/clients/{client_id}")
async def remove_client(client_id: str, request: Request) -> dict[str, str]:
    """Destroy a client session and erase its registration."""
    await _get_container(request).session_manager.remove_session(client_id)
    return {"message": f"Client {client_id} removed successfully."}


@router.post("/clients/{client_id}/webhook")
async def set_webhook(
    client_id: str, body: WebhookRequest, request: Request
) -> dict[str, str]:
    await _get_container(request).session_manager.set_webhook(client_id, body.url)
    return {"message": f"Webhook set for client {client_id}."}


@router.post("/clients/{client_id}/send-message")
async def send_message(
    client_id: str, body: SendMessageRequest, request: Request
) -> dict[str, str]:
    await _get_container(request).messaging_service.send_text(
        client_id, body.to, body.message
    )
    return {"message": f"Message sent to {body.to} from client {client_id}."}


@router.post("/clients/{client_id}/send-media")
async def send_media(
    client_id: str, body: SendMediaRequest, request: Request
) -> dict[str, str]:
    container = _get_container(request)
    media = body.inline_media() or _load_media_file(
        container.settings.media_root, body.file or ""
    )
    await container.messaging_service.send_media(client_id, body.to, media, body.caption)
    return {"message": f"Media sent to {body.to} from client {client_id}."}


@router.post("/clients/{client_id}/send-voice")
async def send_voice(
    client_id: str, body: SendVoiceRequest, request: Request
) -> dict[str, str]:
    await _get_container(request).messaging_service.send_voice_note(
        client_id, body.to, body.mime_type, body.data
    )
    return {"message": f"Voice note sent to {body.to} from client {client_id}."}


@router.get("/clients/{client_id}/base64_qr")
async def base64_qr(client_id: str, request: Request) -> dict[str, str]:
    """Return the pending QR as a base64 data URL."""
    artifact = _require_qr(request, client_id)
    return {"base64_qr": artifact.image_data}


@router.get("/clients/{client_id}/qr", response_model=None)
async def qr_image(client_id: str, request: Request) -> Response:
    """Return the pending QR as a PNG image."""
    artifact = _require_qr(request, client_id)
    return Response(content=decode_data_url(artifact.image_data), media_type="image/png")


@router.get("/clients/{client_id}/contacts")
async def contacts(client_id: str, request: Request) -> dict[str, object]:
    found = await _get_container(request).messaging_service.get_contacts(client_id)
    return {"contacts": found}


@router.get("/clients/{client_id}/chats/{chat_id}")
async def chat_messages(
    client_id: str, chat_id: str, request: Request, limit: int | None = None
) -> dict[str, object]:
    """Return the message history of a chat."""
    messages = await _get_container(request).messaging_service.get_chat_history(
        client_id, chat_id, limit
    )
    return {"messages": messages}


@router.post("/clients/{client_id}/chats/{chat_id}/messages/{message_id}/reaction")
async def react(
    client_id: str,
    chat_id: str,
    message_id: str,
    body: ReactionRequest,
    request: Request,
) -> dict[str, str]:
    await _get_container(request).messaging_service.react_to_message(
        client_id, chat_id, message_id, body.reaction
    )
    return {"message": f"Reacted to message {message_id}."}


def _require_qr(request: Request, client_id: str) -> QRArtifact:
    artifact = _get_container(request).session_manager.get_qr(client_id)
    if artifact is None:
        raise NotFoundError(f"No QR code available for client {client_id}.")
    return artifact


def _load_media_file(media_root: str | None, file_path: str) -> MediaPayload:
    if media_root is None:
        raise InvalidInputError(
            "Sending server-side media files is disabled; send inline data instead."
        )
    return MediaPayload.from_media_root(Path(media_root), file_path)
