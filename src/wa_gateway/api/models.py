"""Pydantic models for API request bodies."""

from typing import Annotated
from urllib.parse import urlparse

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from wa_gateway.domain.media import MediaPayload
from wa_gateway.services.webhooks import split_destinations


def _validate_destinations(value: str) -> str:
    targets = split_destinations(value)
    if not targets:
        raise ValueError("at least one webhook URL is required")
    for target in targets:
        parsed = urlparse(target)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"invalid webhook URL: {target}")
    return value


WebhookDestination = Annotated[str, AfterValidator(_validate_destinations)]


class CreateClientRequest(BaseModel):
    """Body of POST /clients."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    webhook_url: WebhookDestination = Field(alias="webhookUrl")


class WebhookRequest(BaseModel):
    """Body of POST /clients/{id}/webhook."""

    url: WebhookDestination


class SendMessageRequest(BaseModel):
    """Body of POST /clients/{id}/send-message."""

    to: str = Field(min_length=1)
    message: str = Field(min_length=1)


class SendMediaRequest(BaseModel):
    """Body of POST /clients/{id}/send-media.

    Media is either a ``file`` path under the configured media root or
    inline base64 ``data`` with its ``mimetype``.
    """

    to: str = Field(min_length=1)
    file: str | None = None
    mimetype: str | None = None
    data: str | None = None
    filename: str | None = None
    caption: str | None = None

    @model_validator(mode="after")
    def _require_media(self) -> "SendMediaRequest":
        if self.file is None and not (self.data and self.mimetype):
            raise ValueError("either file or data with mimetype is required")
        return self

    def inline_media(self) -> MediaPayload | None:
        if self.data and self.mimetype:
            return MediaPayload(
                mimetype=self.mimetype, data=self.data, filename=self.filename
            )
        return None


class SendVoiceRequest(BaseModel):
    """Body of POST /clients/{id}/send-voice."""

    model_config = ConfigDict(populate_by_name=True)

    to: str = Field(min_length=1)
    mime_type: str = Field(alias="mimeType")
    data: str


class ReactionRequest(BaseModel):
    """Body of the reaction endpoint."""

    reaction: str
