"""In-memory store of pending QR challenges."""

from dataclasses import dataclass
from datetime import UTC, datetime

from wa_gateway.domain.sessions import QRArtifact


@dataclass
class QrCache:
    """Keeps at most one QR artifact per session."""

    _entries: dict[str, QRArtifact]

    def __init__(self) -> None:
        self._entries = {}

    def set(self, session_id: str, image_data: str) -> QRArtifact:
        """Store a QR artifact, replacing any previous one."""
        artifact = QRArtifact(
            session_id=session_id,
            image_data=image_data,
            captured_at=datetime.now(tz=UTC),
        )
        self._entries[session_id] = artifact
        return artifact

    def get(self, session_id: str) -> QRArtifact | None:
        return self._entries.get(session_id)

    def has(self, session_id: str) -> bool:
        return session_id in self._entries

    def delete(self, session_id: str) -> None:
        self._entries.pop(session_id, None)
