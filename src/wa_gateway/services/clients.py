"""Client registry interface."""

from typing import Protocol

from wa_gateway.domain.clients import SessionRecord


class ClientRepository(Protocol):
    """Durable store of registered clients and their webhook destinations."""

    def create(self, record: SessionRecord) -> SessionRecord:
        """Insert a client; raise ConflictError if the id is taken."""

    def get_by_id(self, client_id: str) -> SessionRecord | None:
        """Return a client by id, if present."""

    def update_webhook(self, client_id: str, webhook_url: str) -> None:
        """Replace the webhook destination; raise NotFoundError if absent."""

    def delete(self, client_id: str) -> None:
        """Delete a client if present."""

    def list_all(self) -> list[SessionRecord]:
        """Return every registered client."""
