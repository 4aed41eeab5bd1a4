"""Transient session state models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class SessionState(str, Enum):
    """Lifecycle state of a live client session."""

    INITIALIZING = "initializing"
    QR_PENDING = "qr"
    READY = "ready"
    DISCONNECTED = "disconnected"
    AUTH_FAILED = "auth_failed"


# Connection states the engine may report through change_state events.
KNOWN_ENGINE_STATES = frozenset(
    {
        "CONFLICT",
        "CONNECTED",
        "DEPRECATED_VERSION",
        "OPENING",
        "PAIRING",
        "PROXYBLOCK",
        "SMB_TOS_BLOCK",
        "TIMEOUT",
        "TOS_BLOCK",
        "UNLAUNCHED",
        "UNPAIRED",
        "UNPAIRED_IDLE",
    }
)


@dataclass(frozen=True)
class QRArtifact:
    """Latest QR challenge rendered for a session."""

    session_id: str
    image_data: str
    captured_at: datetime
