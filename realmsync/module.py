"""
R.A.V.N. Realmsync - Module API

Macro-friendly surface shared by scripts and other modules, plus the
actor directory context-menu entry.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .client import VaultClient
from .config import VaultSettings, load_settings
from .errors import InvalidArgument
from .models import CharacterDocument
from .panel import DEFAULT_WORLD_LABEL, LoggingNotifier, Notifier, VaultPanel
from .reconcile import SyncReconciler
from .store import DocumentStore

logger = logging.getLogger(__name__)

MODULE_ID = "ravn-realmsync"
MODULE_TITLE = "R.A.V.N. - Realmsync Adventurer Vault Nexus"

CHARACTER_TYPES = ("character", "pc", "hero")

ActorRef = Union[CharacterDocument, str, None]


def resolve_uuid(uuid: str) -> str:
    """
    Extract the actor id from a document UUID.

    Accepts "Actor.abc123" as well as embedded forms such as
    "Scene.xyz.Token.def.Actor.abc123".
    """
    parts = uuid.split(".") if uuid else []
    for index in range(len(parts) - 2, -1, -1):
        if parts[index] == "Actor" and parts[index + 1]:
            return parts[index + 1]
    raise InvalidArgument(f"UUID does not resolve to an Actor: {uuid}")


@dataclass
class ContextMenuEntry:
    """An entry of the actor directory context menu."""
    name: str
    icon: str
    condition: Callable[[Optional[CharacterDocument], Any], bool]
    callback: Callable[[Optional[CharacterDocument]], Any]


class RealmsyncAPI:
    """Public API: export, import and open the vault panel."""

    def __init__(
        self,
        client: VaultClient,
        store: DocumentStore,
        reconciler: Optional[SyncReconciler] = None,
        notifier: Optional[Notifier] = None,
        settings_provider: Callable[[], VaultSettings] = load_settings,
    ):
        self.module_id = MODULE_ID
        self.client = client
        self.store = store
        self.reconciler = reconciler or SyncReconciler(client, store)
        self.notifier = notifier or LoggingNotifier()
        self.settings_provider = settings_provider

    def _world_label(self, label: Optional[str]) -> str:
        if label is not None:
            return label
        return self.settings_provider().world_id or DEFAULT_WORLD_LABEL

    async def _resolve_actor(self, actor_or_id: ActorRef) -> CharacterDocument:
        if isinstance(actor_or_id, str):
            actor_or_id = await self.store.get(actor_or_id)
        if not isinstance(actor_or_id, CharacterDocument):
            raise InvalidArgument("export_actor expected an actor or actor id.")
        return actor_or_id

    async def export_actor(
        self,
        actor_or_id: ActorRef,
        label: Optional[str] = None,
        overwrite: bool = True,
    ) -> dict:
        """Export an actor, labelled with the world id unless a label is given."""
        actor = await self._resolve_actor(actor_or_id)
        return await self.reconciler.export_character(
            actor, label=self._world_label(label), overwrite=overwrite
        )

    async def export_actor_by_uuid(
        self,
        uuid: str,
        label: Optional[str] = None,
        overwrite: bool = True,
    ) -> dict:
        """Export an actor addressed by UUID, e.g. "Actor.abc123"."""
        if not uuid:
            raise InvalidArgument("export_actor_by_uuid requires a UUID.")
        actor = await self.store.get(resolve_uuid(uuid))
        if actor is None:
            raise InvalidArgument(f"UUID does not resolve to an Actor: {uuid}")
        return await self.export_actor(actor, label=label, overwrite=overwrite)

    async def import_character(
        self,
        remote_id: str,
        target_id: Optional[str] = None,
    ) -> CharacterDocument:
        """Import a vault character, overwriting target_id when given."""
        return await self.reconciler.import_character(remote_id, target_id)

    def open_vault_browser_for_actor(self, actor_or_id: ActorRef = None) -> VaultPanel:
        """Build a vault panel, optionally bound to an actor."""
        if isinstance(actor_or_id, CharacterDocument):
            actor_id = actor_or_id.id
        else:
            actor_id = actor_or_id or None

        settings = self.settings_provider()
        logger.debug(f"Opening Hero Vault panel for actor {actor_id}")
        return VaultPanel(
            self.client,
            self.store,
            self.reconciler,
            notifier=self.notifier,
            actor_id=actor_id,
            system_id=settings.system_id or None,
            world_id=settings.world_id or None,
        )

    # === Context Menu ===

    @staticmethod
    def can_send(actor: Optional[CharacterDocument], user: Any) -> bool:
        """Character-like actors the user owns, or any such actor for a GM."""
        if actor is None:
            return False
        is_character_like = actor.type in CHARACTER_TYPES
        is_owner = bool(getattr(user, "is_gm", False))
        if not is_owner:
            user_id = getattr(user, "id", None)
            ownership = actor.fields.get("ownership") or {}
            # Per-user level, or the level every user gets by default
            level = max(ownership.get(user_id, 0), ownership.get("default", 0))
            is_owner = level >= 3
        return is_character_like and is_owner

    def _open_from_menu(self, actor: Optional[CharacterDocument]) -> Optional[VaultPanel]:
        if actor is None:
            self.notifier.warn("Could not resolve actor for R.A.V.N. Vault export.")
            return None
        return self.open_vault_browser_for_actor(actor)

    def actor_context_entry(self) -> ContextMenuEntry:
        """Entry that opens the vault panel for an owned character."""
        return ContextMenuEntry(
            name="Send to R.A.V.N. Vault…",
            icon="fa-solid fa-crow",
            condition=self.can_send,
            callback=self._open_from_menu,
        )
