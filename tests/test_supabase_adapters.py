"""Tests for Supabase adapter implementations."""

from dataclasses import dataclass, field
from datetime import datetime

import pytest
from postgrest.exceptions import APIError

from wa_gateway.adapters.supabase_client_repository import SupabaseClientRepository
from wa_gateway.domain.clients import SessionRecord
from wa_gateway.domain.errors import ConflictError, NotFoundError


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "insert": [], "update": [], "delete": []}
    )
    last_payload: object | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)
    error: Exception | None = None

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "insert"
        self.last_payload = payload
        return self

    def update(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "update"
        self.last_payload = payload
        return self

    def delete(self) -> "FakeTable":
        self._action = "delete"
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        if self.error:
            raise self.error
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def test_supabase_client_repository_roundtrip() -> None:
    client = FakeSupabaseClient()
    clients_table = client.table("clients")
    row = {
        "id": "alpha",
        "webhook_url": "https://hooks.test/a",
        "created_at": "2024-05-01T10:00:00+00:00",
        "updated_at": None,
    }
    clients_table.queue("insert", [row])
    clients_table.queue("select", [row])
    clients_table.queue("select", [row, {**row, "id": "beta", "webhook_url": None}])

    repository = SupabaseClientRepository(client)
    created = repository.create(
        SessionRecord(id="alpha", webhook_url="https://hooks.test/a")
    )
    fetched = repository.get_by_id("alpha")
    listed = repository.list_all()

    assert clients_table.last_payload == {
        "id": "alpha",
        "webhook_url": "https://hooks.test/a",
    }
    assert created.created_at == datetime.fromisoformat("2024-05-01T10:00:00+00:00")
    assert fetched == created
    assert [record.id for record in listed] == ["alpha", "beta"]
    assert listed[1].webhook_url == ""


def test_supabase_client_repository_missing_client() -> None:
    client = FakeSupabaseClient()
    repository = SupabaseClientRepository(client)

    assert repository.get_by_id("ghost") is None
    with pytest.raises(NotFoundError):
        repository.update_webhook("ghost", "https://hooks.test/new")


def test_supabase_client_repository_update_and_delete() -> None:
    client = FakeSupabaseClient()
    clients_table = client.table("clients")
    clients_table.queue("update", [{"id": "alpha"}])

    repository = SupabaseClientRepository(client)
    repository.update_webhook("alpha", "https://hooks.test/new")
    payload = clients_table.last_payload
    repository.delete("alpha")

    assert isinstance(payload, dict)
    assert payload["webhook_url"] == "https://hooks.test/new"
    assert "updated_at" in payload
    assert clients_table.last_filters == [("id", "alpha"), ("id", "alpha")]


def test_supabase_client_repository_duplicate_insert() -> None:
    client = FakeSupabaseClient()
    clients_table = client.table("clients")
    clients_table.error = APIError(
        {"code": "23505", "message": "duplicate key value", "details": "", "hint": ""}
    )

    repository = SupabaseClientRepository(client)

    with pytest.raises(ConflictError):
        repository.create(SessionRecord(id="alpha", webhook_url=""))

    clients_table.error = APIError(
        {"code": "42P01", "message": "relation missing", "details": "", "hint": ""}
    )
    with pytest.raises(APIError):
        repository.create(SessionRecord(id="alpha", webhook_url=""))
