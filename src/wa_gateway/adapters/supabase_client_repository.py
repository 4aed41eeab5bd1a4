"""Supabase-backed client registry."""

from dataclasses import dataclass
from datetime import UTC, datetime

from postgrest.exceptions import APIError
from supabase import Client

from wa_gateway.domain.clients import SessionRecord
from wa_gateway.domain.errors import ConflictError, NotFoundError
from wa_gateway.services.clients import ClientRepository

_COLUMNS = "id, webhook_url, created_at, updated_at"
_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabaseClientRepository(ClientRepository):
    """Supabase implementation of the ``clients`` table."""

    client: Client

    def create(self, record: SessionRecord) -> SessionRecord:
        """Insert a client row and return it."""
        try:
            response = (
                self.client.table("clients")
                .insert({"id": record.id, "webhook_url": record.webhook_url})
                .execute()
            )
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise ConflictError(f"Client {record.id} already exists.") from exc
            raise
        if not response.data:
            raise RuntimeError("Failed to create client")
        return _parse_record(response.data[0])

    def get_by_id(self, client_id: str) -> SessionRecord | None:
        """Return a client by id, if present."""
        response = (
            self.client.table("clients")
            .select(_COLUMNS)
            .eq("id", client_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_record(response.data[0])

    def update_webhook(self, client_id: str, webhook_url: str) -> None:
        """Replace the webhook destination of a client."""
        response = (
            self.client.table("clients")
            .update(
                {
                    "webhook_url": webhook_url,
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("id", client_id)
            .execute()
        )
        if not response.data:
            raise NotFoundError(f"Client {client_id} not found.")

    def delete(self, client_id: str) -> None:
        """Delete a client row."""
        self.client.table("clients").delete().eq("id", client_id).execute()

    def list_all(self) -> list[SessionRecord]:
        """Return all client rows."""
        response = self.client.table("clients").select(_COLUMNS).execute()
        return [_parse_record(row) for row in response.data or []]


def _parse_record(row: dict[str, object]) -> SessionRecord:
    """Parse a clients row into a domain record."""
    return SessionRecord(
        id=str(row["id"]),
        webhook_url=str(row.get("webhook_url") or ""),
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
    )


def _parse_timestamp(raw: object) -> datetime | None:
    return datetime.fromisoformat(raw) if isinstance(raw, str) and raw else None
