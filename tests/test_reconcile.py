"""
Sync Reconciler Tests

Tests for overwrite and create imports, the system guard and export.
"""

import copy
import json
from unittest.mock import AsyncMock, Mock

import httpx
import pytest


TARGET = {
    "_id": "target000000001",
    "name": "Local Aria",
    "type": "character",
    "img": "aria.png",
    "system": {"attributes": {"hp": {"value": 5, "max": 20}}, "notes": "keep me"},
    "items": [
        {"_id": "old1", "name": "Rusty Dagger"},
        {"_id": "old2", "name": "Rope"},
        {"_id": "old3", "name": "Torch"},
    ],
    "effects": [{"_id": "eff-old", "name": "Blessed"}],
}

REMOTE = {
    "_id": "remote000000009",
    "name": "Vault Aria",
    "type": "character",
    "system": {"attributes": {"hp": {"value": 18, "max": 20}}},
    "items": [
        {"_id": "new1", "name": "Longsword"},
        {"_id": "new2", "name": "Shield"},
    ],
    "effects": [],
    "_stats": {"systemId": "dnd5e"},
}


def make_record(data=REMOTE, system="dnd5e", record_id="vault-1"):
    from realmsync.models import RemoteCharacterRecord

    payload = {"id": record_id, "data": copy.deepcopy(data) if data is not None else None}
    if system:
        payload["system"] = system
    return RemoteCharacterRecord.from_response(payload)


@pytest.fixture
def store():
    """Create a store holding the target actor."""
    from realmsync.store import InMemoryDocumentStore
    return InMemoryDocumentStore([TARGET])


@pytest.fixture
def client():
    """Create a client double whose fetch returns the remote record."""
    mock = Mock()
    mock.system_id = "dnd5e"
    mock.get_character = AsyncMock(return_value=make_record())
    mock.upload_actor = AsyncMock(return_value={"id": "vault-1"})
    return mock


@pytest.fixture
def reconciler(client, store):
    """Create a reconciler for the local dnd5e world."""
    from realmsync.reconcile import SyncReconciler
    return SyncReconciler(client, store, system_provider=lambda: "dnd5e")


class TestOverwrite:
    """Tests for reconciling onto an existing actor."""

    @pytest.mark.asyncio
    async def test_items_replaced_not_merged(self, reconciler, store):
        """Test that 3 existing items give way to exactly the 2 remote ones."""
        result = await reconciler.apply(make_record(), "target000000001")

        names = sorted(item["name"] for item in result.items)
        assert names == ["Longsword", "Shield"]
        stored = await store.list_embedded("target000000001", _kind("ITEM"))
        assert {item["_id"] for item in stored} == {"new1", "new2"}

    @pytest.mark.asyncio
    async def test_effects_replaced(self, reconciler):
        """Test that effects follow the remote collection, even when empty."""
        result = await reconciler.apply(make_record(), "target000000001")
        assert result.effects == []

    @pytest.mark.asyncio
    async def test_identity_preserved(self, reconciler, store):
        """Test that the remote identity never lands on the target."""
        result = await reconciler.apply(make_record(), "target000000001")

        assert result.id == "target000000001"
        assert "_id" not in result.fields
        assert await store.get("remote000000009") is None

    @pytest.mark.asyncio
    async def test_core_fields_merged(self, reconciler):
        """Test field-level update: remote values win, untouched fields stay."""
        result = await reconciler.apply(make_record(), "target000000001")

        assert result.name == "Vault Aria"
        assert result.fields["img"] == "aria.png"
        assert result.fields["system"]["attributes"]["hp"] == {"value": 18, "max": 20}
        assert result.fields["system"]["notes"] == "keep me"

    @pytest.mark.asyncio
    async def test_remote_payload_not_aliased(self, reconciler):
        """Test that the fetched payload is not mutated by the import."""
        record = make_record()
        before = copy.deepcopy(record.data)
        await reconciler.apply(record, "target000000001")
        assert record.data == before

    @pytest.mark.asyncio
    async def test_delete_all_then_insert_all(self, client):
        """Test the order of store calls for one overwrite."""
        from realmsync.models import CharacterDocument, EmbeddedKind
        from realmsync.reconcile import SyncReconciler

        store = AsyncMock()
        store.get_or_raise.return_value = CharacterDocument(id="t1")
        store.list_embedded.side_effect = lambda doc_id, kind: (
            [{"_id": "a"}, {"_id": "b"}] if kind is EmbeddedKind.ITEM else []
        )

        reconciler = SyncReconciler(client, store, system_provider=lambda: "dnd5e")
        await reconciler.apply(make_record(), "t1")

        calls = [c[0] for c in store.method_calls if c[0] != "get_or_raise"]
        assert calls == [
            "update",
            "list_embedded",
            "delete_embedded",
            "create_embedded",
            "list_embedded",
        ]
        store.delete_embedded.assert_awaited_once_with("t1", EmbeddedKind.ITEM, ["a", "b"])
        inserted = store.create_embedded.await_args[0][2]
        assert [r["_id"] for r in inserted] == ["new1", "new2"]

    @pytest.mark.asyncio
    async def test_missing_data_fails_before_writes(self, reconciler, store):
        """Test that a record without data is a precondition failure."""
        from realmsync.errors import PreconditionFailed

        with pytest.raises(PreconditionFailed):
            await reconciler.apply(make_record(data=None), "target000000001")

        assert (await store.get("target000000001")).name == "Local Aria"

    @pytest.mark.asyncio
    async def test_unknown_target(self, reconciler):
        """Test that overwriting a missing actor fails."""
        from realmsync.errors import DocumentNotFound

        with pytest.raises(DocumentNotFound):
            await reconciler.apply(make_record(), "nope")

    @pytest.mark.asyncio
    async def test_failure_aborts_without_rollback(self, reconciler, store):
        """Test that a mid-sequence failure leaves earlier steps applied."""
        store.create_embedded = AsyncMock(side_effect=RuntimeError("disk full"))

        with pytest.raises(RuntimeError):
            await reconciler.apply(make_record(), "target000000001")

        actor = await store.get("target000000001")
        assert actor.name == "Vault Aria"
        assert actor.items == []
        # Effects step never ran
        assert [e["name"] for e in actor.effects] == ["Blessed"]


class TestSystemGuard:
    """Tests for the game system compatibility check."""

    @pytest.mark.asyncio
    async def test_mismatch_leaves_target_untouched(self, client, store):
        """Test that dnd5e data is refused in a pf2e world before any write."""
        from realmsync.errors import SystemMismatch
        from realmsync.reconcile import SyncReconciler

        reconciler = SyncReconciler(client, store, system_provider=lambda: "pf2e")
        before = await store.get("target000000001")

        with pytest.raises(SystemMismatch) as exc_info:
            await reconciler.apply(make_record(system="dnd5e"), "target000000001")

        assert exc_info.value.remote_system == "dnd5e"
        assert exc_info.value.local_system == "pf2e"
        assert await store.get("target000000001") == before

    @pytest.mark.asyncio
    async def test_system_read_from_stats(self, client, store):
        """Test that _stats.systemId counts as the declared system."""
        from realmsync.errors import SystemMismatch
        from realmsync.reconcile import SyncReconciler

        reconciler = SyncReconciler(client, store, system_provider=lambda: "pf2e")
        with pytest.raises(SystemMismatch):
            await reconciler.apply(make_record(system=None), "target000000001")

    @pytest.mark.asyncio
    async def test_undeclared_system_allowed(self, client, store):
        """Test that the guard only applies when both sides declare a system."""
        from realmsync.reconcile import SyncReconciler

        data = {k: v for k, v in REMOTE.items() if k != "_stats"}
        reconciler = SyncReconciler(client, store, system_provider=lambda: "pf2e")
        result = await reconciler.apply(make_record(data=data, system=None), "target000000001")
        assert result.name == "Vault Aria"

    @pytest.mark.asyncio
    async def test_guard_can_be_disabled(self, client, store):
        """Test that enforce_system=False skips the check."""
        from realmsync.reconcile import SyncReconciler

        reconciler = SyncReconciler(client, store, system_provider=lambda: "pf2e", enforce_system=False)
        result = await reconciler.apply(make_record(), "target000000001")
        assert result.name == "Vault Aria"


class TestCreate:
    """Tests for importing as a new actor."""

    @pytest.mark.asyncio
    async def test_creates_new_actor_with_collections(self, reconciler, store):
        """Test that the full payload becomes a new actor."""
        created = await reconciler.import_character("vault-1")

        assert created.id not in ("target000000001", "remote000000009")
        assert created.name == "Vault Aria"
        assert [i["name"] for i in created.items] == ["Longsword", "Shield"]
        assert len(await store.all()) == 2

    @pytest.mark.asyncio
    async def test_create_ignores_system_guard(self, client, store):
        """Test that a new actor can be imported from another game system."""
        from realmsync.reconcile import SyncReconciler

        reconciler = SyncReconciler(client, store, system_provider=lambda: "pf2e")
        created = await reconciler.apply(make_record(system="dnd5e"), None)

        assert created.name == "Vault Aria"
        assert (await store.get("target000000001")).name == "Local Aria"
        assert len(await store.all()) == 2

    @pytest.mark.asyncio
    async def test_import_fetches_once(self, reconciler, client):
        """Test that importing fetches the remote record by id."""
        await reconciler.import_character("vault-1", "target000000001")
        client.get_character.assert_awaited_once_with("vault-1")


class TestExport:
    """Tests for sending actors to the vault."""

    @pytest.mark.asyncio
    async def test_export_by_id(self, reconciler, client):
        """Test exporting an actor looked up in the store."""
        result = await reconciler.export_character("target000000001", label="w", overwrite=True)

        assert result == {"id": "vault-1"}
        document = client.upload_actor.await_args[0][0]
        assert document.id == "target000000001"
        assert client.upload_actor.await_args[1] == {"label": "w", "overwrite": True}

    @pytest.mark.asyncio
    async def test_export_requires_document(self, reconciler, client):
        """Test that nothing is uploaded without a document."""
        from realmsync.errors import InvalidArgument

        with pytest.raises(InvalidArgument):
            await reconciler.export_character(None)
        client.upload_actor.assert_not_awaited()


class TestEndToEnd:
    """Reconciliation against a mock Hero Vault."""

    @pytest.mark.asyncio
    async def test_pull_over_http(self, store):
        """Test fetching over HTTP and overwriting the local actor."""
        from realmsync.client import ClientConfig, VaultClient
        from realmsync.reconcile import SyncReconciler

        def handler(request):
            assert request.url.path == "/api/characters/vault-1"
            return httpx.Response(200, json={"id": "vault-1", "system": "dnd5e", "data": REMOTE})

        config = ClientConfig(system_provider=lambda: "dnd5e")
        async with VaultClient(config, transport=httpx.MockTransport(handler)) as client:
            reconciler = SyncReconciler(client, store)
            result = await reconciler.import_character("vault-1", "target000000001")

        assert result.id == "target000000001"
        assert {i["name"] for i in result.items} == {"Longsword", "Shield"}
        assert json.dumps(result.to_object())


def _kind(name):
    from realmsync.models import EmbeddedKind
    return EmbeddedKind[name]
