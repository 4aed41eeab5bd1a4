"""Domain models for registered clients."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class SessionRecord:
    """Represents a client registration persisted in the registry."""

    id: str
    webhook_url: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ClientSummary:
    """Client listing entry combining durable and transient state."""

    id: str
    webhook_url: str | None
    qr: str | None
    status: str

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "webhookUrl": self.webhook_url,
            "qr": self.qr,
            "status": self.status,
        }
