"""
R.A.V.N. Realmsync - Sync Reconciler

Brings a local character in line with a Hero Vault payload, or creates a
new character from it. Embedded items and effects are replaced wholesale:
every existing record is deleted before the remote records are inserted,
so the target ends with exactly the remote membership.

Steps run strictly one after another. A failure aborts the remainder and
nothing already applied is rolled back.
"""

import copy
import logging
from typing import Callable, Optional, Union

from .client import VaultClient
from .errors import InvalidArgument, SystemMismatch
from .models import IDENTITY_FIELD, CharacterDocument, EmbeddedKind, RemoteCharacterRecord
from .store import DocumentStore

logger = logging.getLogger(__name__)


class SyncReconciler:
    """Imports vault payloads into a document store and exports documents back."""

    def __init__(
        self,
        client: VaultClient,
        store: DocumentStore,
        system_provider: Optional[Callable[[], str]] = None,
        enforce_system: bool = True,
    ):
        self.client = client
        self.store = store
        self.system_provider = system_provider or (lambda: client.system_id)
        self.enforce_system = enforce_system

    def check_system(self, record: RemoteCharacterRecord) -> None:
        """Refuse payloads declared for a different game system than ours."""
        if not self.enforce_system:
            return
        remote_system = record.declared_system
        local_system = self.system_provider() or ""
        if remote_system and local_system and remote_system != local_system:
            raise SystemMismatch(remote_system, local_system)

    # === Import ===

    async def import_character(
        self,
        remote_id: str,
        target_id: Optional[str] = None,
    ) -> CharacterDocument:
        """
        Fetch a vault character and apply it locally.

        Args:
            remote_id: Hero Vault character id
            target_id: Local actor to overwrite; None creates a new actor

        Returns:
            The created or updated local document
        """
        record = await self.client.get_character(remote_id)
        return await self.apply(record, target_id)

    async def apply(
        self,
        record: RemoteCharacterRecord,
        target_id: Optional[str] = None,
    ) -> CharacterDocument:
        """Apply a fetched record: overwrite target_id, or create when it is None."""
        data = record.require_data()

        if target_id is None:
            created = await self.store.create(copy.deepcopy(data))
            logger.info(f"Imported vault character {record.id or '?'} as new actor {created.id}")
            return created

        self.check_system(record)
        return await self._overwrite(target_id, data)

    async def _overwrite(self, target_id: str, data: dict) -> CharacterDocument:
        # Verify the target exists before the first write
        await self.store.get_or_raise(target_id)

        fields = copy.deepcopy(data)
        items = fields.pop(EmbeddedKind.ITEM.collection, None) or []
        effects = fields.pop(EmbeddedKind.EFFECT.collection, None) or []
        # The target keeps its own identity
        fields.pop(IDENTITY_FIELD, None)

        completed: list[str] = []
        try:
            await self.store.update(target_id, fields)
            completed.append("core fields")

            await self._replace_embedded(target_id, EmbeddedKind.ITEM, items)
            completed.append("items")

            await self._replace_embedded(target_id, EmbeddedKind.EFFECT, effects)
            completed.append("effects")
        except Exception as e:
            if completed:
                logger.error(
                    f"Overwrite of actor {target_id} failed after {', '.join(completed)}; "
                    f"actor left partially updated: {e}"
                )
            raise

        logger.info(
            f"Overwrote actor {target_id} with {len(items)} items and {len(effects)} effects"
        )
        return await self.store.get_or_raise(target_id)

    async def _replace_embedded(self, target_id: str, kind: EmbeddedKind, records: list[dict]) -> None:
        """Delete every current record of kind, then insert records."""
        existing = await self.store.list_embedded(target_id, kind)
        stale_ids = [r[IDENTITY_FIELD] for r in existing if r.get(IDENTITY_FIELD)]
        if stale_ids:
            await self.store.delete_embedded(target_id, kind, stale_ids)
        if records:
            await self.store.create_embedded(target_id, kind, records)
        logger.debug(f"Replaced {len(stale_ids)} {kind.value} with {len(records)} on {target_id}")

    # === Export ===

    async def export_character(
        self,
        document: Union[CharacterDocument, str, None],
        label: str = "",
        overwrite: bool = True,
    ) -> dict:
        """
        Upload a local character to the vault.

        Args:
            document: The document, or the id of one in the store
            label: Label stored alongside the vault entry
            overwrite: Replace the existing vault entry

        Returns:
            The service's upload response
        """
        if isinstance(document, str):
            document = await self.store.get_or_raise(document)
        if document is None:
            raise InvalidArgument("export_character requires a character document or id.")
        return await self.client.upload_actor(document, label=label, overwrite=overwrite)
