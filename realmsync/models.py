"""
R.A.V.N. Realmsync - Data Models

Shapes exchanged between the Hero Vault client, the reconciler and the
local document store.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .errors import PreconditionFailed

# Identity field of a host document and of its embedded records
IDENTITY_FIELD = "_id"

UNKNOWN_SYSTEM = "unknown-system"


# =============================================================================
# Options
# =============================================================================

@dataclass
class ListOptions:
    """Filters recognized by the character listing endpoint."""
    system: str = ""
    sort: str = "updated"


@dataclass
class UploadOptions:
    """Metadata attached to an uploaded character."""
    label: str = ""
    overwrite: bool = True


# =============================================================================
# Embedded Collections
# =============================================================================

class EmbeddedKind(Enum):
    """Embedded document collections owned by a character."""
    ITEM = "Item"
    EFFECT = "ActiveEffect"

    @property
    def collection(self) -> str:
        """Key holding this collection in a serialized character."""
        return "items" if self is EmbeddedKind.ITEM else "effects"


# =============================================================================
# Remote Shapes
# =============================================================================

@dataclass
class RemoteCharacterSummary:
    """A row of the Hero Vault character listing."""
    id: str
    name: str
    system: str
    label: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict:
        """Convert to the camelCase shape the vault panel renders."""
        return {
            "id": self.id,
            "name": self.name,
            "system": self.system,
            "label": self.label,
            "updatedAt": self.updated_at,
        }


@dataclass
class RemoteCharacterRecord:
    """A single character payload fetched from the vault."""
    id: str
    data: Optional[dict]
    system: Optional[str] = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_response(cls, payload: Any) -> "RemoteCharacterRecord":
        """Create from a decoded GET /api/characters/{id} response."""
        if not isinstance(payload, dict):
            payload = {}
        data = payload.get("data")
        system = payload.get("system")
        return cls(
            id=str(payload.get("id") or ""),
            data=data if isinstance(data, dict) else None,
            system=system if isinstance(system, str) and system else None,
            raw=payload,
        )

    def require_data(self) -> dict:
        """Return the character payload, failing if the vault sent none."""
        if self.data is None:
            raise PreconditionFailed("Remote character has no data payload.")
        return self.data

    @property
    def declared_system(self) -> Optional[str]:
        """Game system the payload claims to belong to, if any."""
        if self.system:
            return self.system
        stats = (self.data or {}).get("_stats")
        if isinstance(stats, dict) and isinstance(stats.get("systemId"), str):
            return stats["systemId"] or None
        return None


# =============================================================================
# Local Documents
# =============================================================================

@dataclass
class CharacterDocument:
    """A host character document split into identity, core fields and collections."""
    id: str
    fields: dict = field(default_factory=dict)
    items: list[dict] = field(default_factory=list)
    effects: list[dict] = field(default_factory=list)

    @classmethod
    def from_object(cls, value: dict, doc_id: Optional[str] = None) -> "CharacterDocument":
        """Partition a serialized character. The value is copied, never aliased."""
        fields = copy.deepcopy(value)
        items = fields.pop(EmbeddedKind.ITEM.collection, None) or []
        effects = fields.pop(EmbeddedKind.EFFECT.collection, None) or []
        identity = fields.pop(IDENTITY_FIELD, None)
        return cls(
            id=doc_id or identity or "",
            fields=fields,
            items=list(items),
            effects=list(effects),
        )

    def to_object(self) -> dict:
        """Full serialized value of the document (a copy)."""
        value = copy.deepcopy(self.fields)
        value[IDENTITY_FIELD] = self.id
        value[EmbeddedKind.ITEM.collection] = copy.deepcopy(self.items)
        value[EmbeddedKind.EFFECT.collection] = copy.deepcopy(self.effects)
        return value

    def embedded(self, kind: EmbeddedKind) -> list[dict]:
        """The live list for one embedded collection."""
        return self.items if kind is EmbeddedKind.ITEM else self.effects

    @property
    def name(self) -> str:
        return self.fields.get("name") or ""

    @property
    def type(self) -> str:
        return self.fields.get("type") or ""
