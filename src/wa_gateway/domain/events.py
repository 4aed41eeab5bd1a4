"""Webhook event models, one payload schema per event type."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class WebhookEventType(str, Enum):
    """Event categories forwarded to webhook subscribers."""

    QR = "qr"
    READY = "ready"
    MESSAGE_RECEIVED = "message"
    DISCONNECTED = "disconnected"
    AUTH_FAILURE = "auth_failure"
    STATE_CHANGED = "change_state"


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_id: str = Field(alias="clientId")


class QrPayload(_Payload):
    """New QR challenge rendered as a PNG data URL."""

    qr: str


class ReadyPayload(_Payload):
    """Client finished authentication."""


class ReceivedMedia(BaseModel):
    """Media downloaded from an inbound message."""

    mimetype: str
    data_base_64: str
    filename: str | None = None


class MessagePayload(_Payload):
    """Inbound message received by a client."""

    from_: str = Field(alias="from")
    body: str = ""
    timestamp: int | None = None
    msg: dict[str, object] = Field(default_factory=dict)
    media: ReceivedMedia | None = None


class DisconnectedPayload(_Payload):
    """Client connection was closed by the engine."""

    reason: str | None = None


class AuthFailurePayload(_Payload):
    """Authentication was rejected."""

    message: str | None = None


class StateChangedPayload(_Payload):
    """Engine connection state changed; state may be null."""

    state: str | None = None


WebhookPayload = (
    QrPayload
    | ReadyPayload
    | MessagePayload
    | DisconnectedPayload
    | AuthFailurePayload
    | StateChangedPayload
)

_PAYLOAD_TYPES: dict[WebhookEventType, type[_Payload]] = {
    WebhookEventType.QR: QrPayload,
    WebhookEventType.READY: ReadyPayload,
    WebhookEventType.MESSAGE_RECEIVED: MessagePayload,
    WebhookEventType.DISCONNECTED: DisconnectedPayload,
    WebhookEventType.AUTH_FAILURE: AuthFailurePayload,
    WebhookEventType.STATE_CHANGED: StateChangedPayload,
}


@dataclass(frozen=True)
class WebhookEvent:
    """Event raised by a session, dispatched and then discarded."""

    session_id: str
    type: WebhookEventType
    payload: WebhookPayload

    def __post_init__(self) -> None:
        expected = _PAYLOAD_TYPES[self.type]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.type.value} events require {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )

    def to_body(self) -> dict[str, object]:
        """Serialize to the JSON document posted to subscribers."""
        return {
            "type": self.type.value,
            "payload": self.payload.model_dump(
                by_alias=True,
                exclude_none=isinstance(self.payload, MessagePayload),
                mode="json",
            ),
        }

    @classmethod
    def qr(cls, session_id: str, qr: str) -> "WebhookEvent":
        return cls(session_id, WebhookEventType.QR, QrPayload(client_id=session_id, qr=qr))

    @classmethod
    def ready(cls, session_id: str) -> "WebhookEvent":
        return cls(session_id, WebhookEventType.READY, ReadyPayload(client_id=session_id))

    @classmethod
    def message_received(
        cls, session_id: str, payload: MessagePayload
    ) -> "WebhookEvent":
        return cls(session_id, WebhookEventType.MESSAGE_RECEIVED, payload)

    @classmethod
    def disconnected(cls, session_id: str, reason: str | None) -> "WebhookEvent":
        return cls(
            session_id,
            WebhookEventType.DISCONNECTED,
            DisconnectedPayload(client_id=session_id, reason=reason),
        )

    @classmethod
    def auth_failure(cls, session_id: str, message: str | None) -> "WebhookEvent":
        return cls(
            session_id,
            WebhookEventType.AUTH_FAILURE,
            AuthFailurePayload(client_id=session_id, message=message),
        )

    @classmethod
    def state_changed(cls, session_id: str, state: str | None) -> "WebhookEvent":
        return cls(
            session_id,
            WebhookEventType.STATE_CHANGED,
            StateChangedPayload(client_id=session_id, state=state),
        )
