"""
R.A.V.N. Realmsync - Vault Panel

Rendering-free controller behind the Hero Vault browser panel: lists the
player's vault characters, imports one as a new actor and sends the bound
actor to the vault. User-facing messages go through a Notifier.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from .client import VaultClient
from .models import UNKNOWN_SYSTEM, RemoteCharacterSummary
from .reconcile import SyncReconciler
from .store import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_WORLD_LABEL = "foundry-world"


# =============================================================================
# Notifications
# =============================================================================

class Notifier(ABC):
    """Sink for user-facing messages."""

    @abstractmethod
    def info(self, message: str) -> None: ...

    @abstractmethod
    def warn(self, message: str) -> None: ...

    @abstractmethod
    def error(self, message: str) -> None: ...


class LoggingNotifier(Notifier):
    """Notifier that writes to the application log."""

    def __init__(self, name: str = "realmsync.notifications"):
        self._logger = logging.getLogger(name)

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warn(self, message: str) -> None:
        self._logger.warning(message)

    def error(self, message: str) -> None:
        self._logger.error(message)


# =============================================================================
# Panel State
# =============================================================================

@dataclass
class PanelState:
    """What the panel currently shows."""
    loading: bool = False
    error: Optional[str] = None
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    system_id: str = UNKNOWN_SYSTEM
    characters: list[RemoteCharacterSummary] = field(default_factory=list)
    selected_id: Optional[str] = None
    last_refreshed_at: Optional[str] = None


class VaultPanel:
    """Browse, import and export Hero Vault characters for one actor."""

    def __init__(
        self,
        client: VaultClient,
        store: DocumentStore,
        reconciler: SyncReconciler,
        notifier: Optional[Notifier] = None,
        actor_id: Optional[str] = None,
        system_id: Optional[str] = None,
        world_id: Optional[str] = None,
    ):
        self.client = client
        self.store = store
        self.reconciler = reconciler
        self.notifier = notifier or LoggingNotifier()
        self.world_id = world_id
        self.state = PanelState(
            actor_id=actor_id,
            system_id=system_id or client.system_id or UNKNOWN_SYSTEM,
        )

    def update(self, **changes: Any) -> PanelState:
        """Apply state changes."""
        for key, value in changes.items():
            setattr(self.state, key, value)
        return self.state

    async def prepare_context(self) -> dict:
        """State plus connection details for rendering."""
        if self.state.actor_id and self.state.actor_name is None:
            actor = await self.store.get(self.state.actor_id)
            self.state.actor_name = actor.name if actor else None

        context = asdict(self.state)
        context["characters"] = [c.to_dict() for c in self.state.characters]
        context["has_token"] = bool(self.client.token)
        context["api_base_url"] = self.client.base_url
        return context

    async def first_render(self) -> dict:
        """Prepare the first view, loading the listing when a token is set."""
        context = await self.prepare_context()
        if context["has_token"]:
            await self.refresh()
            context = await self.prepare_context()
        return context

    def _fail(self, action: str, error: Exception) -> None:
        logger.error(f"Hero Vault {action} failed: {error}")
        self.update(loading=False, error=str(error))

    # === Actions ===

    async def refresh(self) -> list[RemoteCharacterSummary]:
        """Reload the character listing for this world's system."""
        if self.state.loading:
            return self.state.characters

        self.update(loading=True, error=None)
        try:
            characters = await self.client.list_characters(
                system=self.state.system_id or "",
                sort="updated",
            )
        except Exception as e:
            self._fail("refresh", e)
            return self.state.characters

        self.update(
            loading=False,
            error=None,
            characters=characters,
            last_refreshed_at=datetime.now(timezone.utc).isoformat(),
        )
        return characters

    def select(self, character_id: Optional[str]) -> None:
        self.update(selected_id=character_id or None)

    async def import_remote(self, character_id: Optional[str] = None):
        """Import the given or selected vault character as a new actor."""
        character_id = character_id or self.state.selected_id
        if not character_id:
            self.notifier.warn("Select a Hero Vault character to import first.")
            return None
        if self.state.loading:
            return None

        self.update(loading=True, error=None)
        try:
            created = await self.reconciler.import_character(character_id)
        except Exception as e:
            self._fail("import", e)
            self.notifier.error(f"Hero Vault import failed: {e}")
            return None

        self.update(loading=False, error=None)
        self.notifier.info(f'Imported "{created.name}" from Hero Vault.')
        return created

    async def export_current(self) -> Optional[dict]:
        """Send the bound actor to the vault."""
        actor = await self.store.get(self.state.actor_id) if self.state.actor_id else None
        if actor is None:
            self.notifier.warn(
                "No actor bound to this R.A.V.N. panel. Open it from an actor's context menu."
            )
            return None
        if self.state.loading:
            return None

        self.update(loading=True, error=None)
        try:
            result = await self.reconciler.export_character(
                actor,
                label=self.world_id or DEFAULT_WORLD_LABEL,
                overwrite=True,
            )
        except Exception as e:
            self._fail("export", e)
            self.notifier.error(f"Hero Vault export failed: {e}")
            return None

        self.update(loading=False, error=None)
        vault_id = result.get("id") or result.get("vaultId") or "unknown-id"
        self.notifier.info(f'Sent "{actor.name}" to Hero Vault (id={vault_id}).')
        return result
