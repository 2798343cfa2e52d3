"""
R.A.V.N. Realmsync - Realmsync Adventurer Vault Nexus

Synchronizes player characters between a virtual tabletop and the
Hero Vault character service.
"""

from .client import (
    ClientConfig,
    VaultClient,
    normalize_summary,
    vault_session,
)
from .config import DEFAULT_BASE_URL, VaultSettings
from .errors import (
    DocumentNotFound,
    InvalidArgument,
    NetworkError,
    PreconditionFailed,
    RemoteError,
    SystemMismatch,
    VaultError,
)
from .models import (
    CharacterDocument,
    EmbeddedKind,
    ListOptions,
    RemoteCharacterRecord,
    RemoteCharacterSummary,
    UploadOptions,
)
from .module import MODULE_ID, RealmsyncAPI
from .panel import LoggingNotifier, Notifier, VaultPanel
from .reconcile import SyncReconciler
from .store import DocumentStore, InMemoryDocumentStore, JsonDocumentStore

__version__ = "0.1.0"
__all__ = [
    # Main classes
    "VaultClient",
    "SyncReconciler",
    "RealmsyncAPI",
    "VaultPanel",

    # Configuration
    "ClientConfig",
    "VaultSettings",
    "DEFAULT_BASE_URL",
    "MODULE_ID",

    # Data models
    "CharacterDocument",
    "EmbeddedKind",
    "ListOptions",
    "UploadOptions",
    "RemoteCharacterRecord",
    "RemoteCharacterSummary",

    # Collaborators
    "DocumentStore",
    "InMemoryDocumentStore",
    "JsonDocumentStore",
    "Notifier",
    "LoggingNotifier",

    # Exceptions
    "VaultError",
    "InvalidArgument",
    "RemoteError",
    "NetworkError",
    "PreconditionFailed",
    "SystemMismatch",
    "DocumentNotFound",

    # Convenience functions
    "normalize_summary",
    "vault_session",
]
