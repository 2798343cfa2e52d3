"""
R.A.V.N. Realmsync - Exceptions

Every failure raised by the vault client, the reconciler and the document
store derives from VaultError so callers can catch the whole family.
"""

from typing import Optional


class VaultError(Exception):
    """Base exception for Hero Vault operations."""
    pass


class InvalidArgument(VaultError, ValueError):
    """A required identifier or document was empty or missing."""
    pass


class RemoteError(VaultError):
    """The Hero Vault service answered with a non-2xx status."""

    def __init__(self, status: int, status_text: str, body: str):
        super().__init__(f"Hero Vault API {status} {status_text}: {body}")
        self.status = status
        self.status_text = status_text
        self.body = body


class NetworkError(VaultError):
    """The request never produced an HTTP response."""
    pass


class PreconditionFailed(VaultError):
    """A successful response lacked an expected field."""
    pass


class SystemMismatch(VaultError):
    """Remote document belongs to a different game system than the local one."""

    def __init__(self, remote_system: str, local_system: str):
        super().__init__(
            f"Hero Vault character belongs to system '{remote_system}', "
            f"but this world runs '{local_system}'"
        )
        self.remote_system = remote_system
        self.local_system = local_system


class DocumentNotFound(VaultError, LookupError):
    """No local document exists with the given identity."""

    def __init__(self, doc_id: Optional[str]):
        super().__init__(f"No actor with id '{doc_id}'")
        self.doc_id = doc_id
