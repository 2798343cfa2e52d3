"""
R.A.V.N. Realmsync - Document Store

The host application's actor storage as seen by the reconciler. The
abstract DocumentStore lists the primitives the reconciler relies on; the
in-memory and JSON-file stores back the CLI and the tests.
"""

import copy
import json
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

from .errors import DocumentNotFound, InvalidArgument, VaultError
from .models import IDENTITY_FIELD, CharacterDocument, EmbeddedKind

logger = logging.getLogger(__name__)


def new_identity() -> str:
    """Generate a 16 character document identity."""
    return uuid.uuid4().hex[:16]


def merge_fields(target: dict, changes: dict) -> dict:
    """Recursively merge changes into target; untouched keys survive."""
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            merge_fields(target[key], value)
        else:
            target[key] = copy.deepcopy(value)
    return target


# =============================================================================
# Abstract Store
# =============================================================================

class DocumentStore(ABC):
    """Persistence primitives for character documents."""

    @abstractmethod
    async def get(self, doc_id: str) -> Optional[CharacterDocument]:
        """Look up a document by identity."""

    @abstractmethod
    async def all(self) -> list[CharacterDocument]:
        """Every stored document."""

    @abstractmethod
    async def update(self, doc_id: str, fields: dict) -> CharacterDocument:
        """Merge core fields into a document."""

    @abstractmethod
    async def list_embedded(self, doc_id: str, kind: EmbeddedKind) -> list[dict]:
        """Records of one embedded collection."""

    @abstractmethod
    async def delete_embedded(self, doc_id: str, kind: EmbeddedKind, ids: list[str]) -> list[str]:
        """Remove embedded records by identity."""

    @abstractmethod
    async def create_embedded(self, doc_id: str, kind: EmbeddedKind, records: list[dict]) -> list[dict]:
        """Insert embedded records, returning them with their identities."""

    @abstractmethod
    async def create(self, value: dict) -> CharacterDocument:
        """Create a document, embedded collections included, from a serialized value."""

    async def get_or_raise(self, doc_id: str) -> CharacterDocument:
        """Look up a document, failing when it does not exist."""
        if not doc_id:
            raise InvalidArgument("A document id is required.")
        document = await self.get(doc_id)
        if document is None:
            raise DocumentNotFound(doc_id)
        return document


# =============================================================================
# In-Memory Store
# =============================================================================

class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store. Documents handed out are copies."""

    def __init__(self, documents: Optional[Iterable[dict]] = None):
        self._documents: dict[str, CharacterDocument] = {}
        for value in documents or ():
            document = CharacterDocument.from_object(value)
            document.id = document.id or new_identity()
            self._documents[document.id] = document

    def _require(self, doc_id: str) -> CharacterDocument:
        document = self._documents.get(doc_id)
        if document is None:
            raise DocumentNotFound(doc_id)
        return document

    def _changed(self) -> None:
        """Hook called after every mutation."""

    async def get(self, doc_id: str) -> Optional[CharacterDocument]:
        document = self._documents.get(doc_id)
        return copy.deepcopy(document) if document else None

    async def all(self) -> list[CharacterDocument]:
        return [copy.deepcopy(doc) for doc in self._documents.values()]

    async def update(self, doc_id: str, fields: dict) -> CharacterDocument:
        document = self._require(doc_id)
        changes = {
            key: value
            for key, value in fields.items()
            if key not in (IDENTITY_FIELD, EmbeddedKind.ITEM.collection, EmbeddedKind.EFFECT.collection)
        }
        merge_fields(document.fields, changes)
        self._changed()
        return copy.deepcopy(document)

    async def list_embedded(self, doc_id: str, kind: EmbeddedKind) -> list[dict]:
        return copy.deepcopy(self._require(doc_id).embedded(kind))

    async def delete_embedded(self, doc_id: str, kind: EmbeddedKind, ids: list[str]) -> list[str]:
        collection = self._require(doc_id).embedded(kind)
        doomed = set(ids)
        deleted = [record.get(IDENTITY_FIELD) for record in collection if record.get(IDENTITY_FIELD) in doomed]
        collection[:] = [record for record in collection if record.get(IDENTITY_FIELD) not in doomed]
        self._changed()
        logger.debug(f"Deleted {len(deleted)} {kind.value} from {doc_id}")
        return deleted

    def _insert(self, collection: list[dict], records: list[dict]) -> list[dict]:
        taken = {record.get(IDENTITY_FIELD) for record in collection}
        created = []
        for record in records:
            record = copy.deepcopy(record)
            if not record.get(IDENTITY_FIELD) or record[IDENTITY_FIELD] in taken:
                record[IDENTITY_FIELD] = new_identity()
            taken.add(record[IDENTITY_FIELD])
            collection.append(record)
            created.append(copy.deepcopy(record))
        return created

    async def create_embedded(self, doc_id: str, kind: EmbeddedKind, records: list[dict]) -> list[dict]:
        collection = self._require(doc_id).embedded(kind)
        created = self._insert(collection, records)
        self._changed()
        logger.debug(f"Created {len(created)} {kind.value} on {doc_id}")
        return created

    async def create(self, value: dict) -> CharacterDocument:
        if not isinstance(value, dict):
            raise InvalidArgument("create requires a serialized character.")
        source = CharacterDocument.from_object(value)
        document = CharacterDocument(id=new_identity(), fields=source.fields)
        self._insert(document.items, source.items)
        self._insert(document.effects, source.effects)
        self._documents[document.id] = document
        self._changed()
        logger.info(f"Created actor '{document.name}' ({document.id})")
        return copy.deepcopy(document)


# =============================================================================
# JSON File Store
# =============================================================================

class JsonDocumentStore(InMemoryDocumentStore):
    """In-memory store persisted to a single JSON file after every mutation."""

    def __init__(self, path: Path):
        self.path = Path(path)
        documents = []
        if self.path.exists():
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            # Either {"actors": [...]} or a bare list of actors
            documents = payload.get("actors", []) if isinstance(payload, dict) else payload
            if not isinstance(documents, list) or not all(isinstance(d, dict) for d in documents):
                raise VaultError(f"{self.path} does not hold a list of actors")
            logger.info(f"Loaded {len(documents)} actors from {self.path}")
        super().__init__(documents)

    def _changed(self) -> None:
        self.save()

    def save(self) -> None:
        """Write every document to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"actors": [doc.to_object() for doc in self._documents.values()]}
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        logger.debug(f"Saved {len(self._documents)} actors to {self.path}")
