"""
R.A.V.N. Realmsync - Hero Vault Client

Async REST client for the Hero Vault character service.

Features:
- Lazily created httpx client, reused for the life of the process
- Token and base URL re-read on every request
- Normalization of the listing endpoint's envelope and field drift
- One request per call: no retries, no backoff
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx

from .config import DEFAULT_BASE_URL
from .errors import InvalidArgument, NetworkError, PreconditionFailed, RemoteError
from .models import (
    UNKNOWN_SYSTEM,
    CharacterDocument,
    ListOptions,
    RemoteCharacterRecord,
    RemoteCharacterSummary,
    UploadOptions,
)

logger = logging.getLogger(__name__)

CHARACTERS_ENDPOINT = "/api/characters"

# Envelope keys that may wrap the character listing
LIST_ENVELOPES = ("characters", "results")

# Candidate keys per summary field, in priority order
SUMMARY_FIELDS: dict[str, tuple[str, ...]] = {
    "id": ("id", "_id", "characterId"),
    "name": ("name", "label"),
    "system": ("system", "systemId"),
    "label": ("label", "world", "campaign"),
    "updated_at": ("updatedAt", "updated_at", "modifiedAt", "createdAt"),
}

SUMMARY_DEFAULTS = {
    "id": "unknown-id",
    "name": "Unnamed Hero",
    "label": "",
    "updated_at": "",
}


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class ClientConfig:
    """Providers the client consults on every request."""
    token_provider: Callable[[], str] = field(default=lambda: "")
    base_url_provider: Callable[[], str] = field(default=lambda: DEFAULT_BASE_URL)
    system_provider: Callable[[], str] = field(default=lambda: "")
    timeout: Optional[float] = 30.0


def _first_present(item: dict, keys: tuple[str, ...]) -> Any:
    """First value among keys that is present and not None."""
    for key in keys:
        value = item.get(key)
        if value is not None:
            return value
    return None


def _unwrap_listing(data: Any) -> list:
    """Accept a bare list or a known envelope; anything else is empty."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in LIST_ENVELOPES:
            if isinstance(data.get(key), list):
                return data[key]
    return []


def normalize_summary(item: dict, fallback_system: str = "") -> RemoteCharacterSummary:
    """Resolve each summary field through its fallback chain."""
    values = {}
    for name, keys in SUMMARY_FIELDS.items():
        value = _first_present(item, keys)
        if value is None:
            if name == "system":
                value = fallback_system or UNKNOWN_SYSTEM
            else:
                value = SUMMARY_DEFAULTS[name]
        values[name] = str(value)
    return RemoteCharacterSummary(**values)


# =============================================================================
# Vault Client
# =============================================================================

class VaultClient:
    """Client for the Hero Vault REST API."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ClientConfig()
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        """Configured base URL without trailing slash, or the default."""
        raw = (self.config.base_url_provider() or DEFAULT_BASE_URL).removesuffix("/")
        return raw or DEFAULT_BASE_URL

    @property
    def token(self) -> str:
        return self.config.token_provider() or ""

    @property
    def system_id(self) -> str:
        return self.config.system_provider() or ""

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
        logger.debug("Vault client closed")

    async def __aenter__(self) -> "VaultClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _build_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, str]] = None,
        body: Any = None,
    ) -> Any:
        """
        Make a single API request and decode its payload.

        Returns:
            The decoded JSON body, or {} when the response is not JSON.

        Raises:
            RemoteError: The service answered with a non-2xx status.
            NetworkError: No response was received.
            PreconditionFailed: The body claimed to be JSON but was not.
        """
        client = await self._get_http_client()
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url} params={params or {}}")

        try:
            response = await client.request(
                method,
                url,
                params=params or None,
                json=body,
                headers=self._build_headers(),
            )
        except httpx.RequestError as e:
            logger.warning(f"Network error on {method} {url}: {e}")
            raise NetworkError(f"Network error contacting Hero Vault: {e}") from e

        if not response.is_success:
            try:
                text = response.text
            except (httpx.ResponseNotRead, UnicodeDecodeError):
                text = response.reason_phrase
            logger.warning(f"Hero Vault API {response.status_code} on {method} {url}")
            raise RemoteError(response.status_code, response.reason_phrase, text)

        # Some endpoints may be empty (204)
        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise PreconditionFailed(f"Hero Vault returned malformed JSON: {e}") from e

    # === Read Operations ===

    async def list_characters(
        self,
        options: Optional[ListOptions] = None,
        *,
        system: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> list[RemoteCharacterSummary]:
        """
        List the current user's characters.

        Args:
            options: Listing filters; keyword arguments override its fields
            system: Only characters of this game system
            sort: Sort key understood by the service

        Returns:
            Normalized summaries; empty when the response shape is unknown
        """
        options = options or ListOptions()
        system = options.system if system is None else system
        sort = options.sort if sort is None else sort

        params = {}
        if system:
            params["system"] = system
        if sort:
            params["sort"] = sort

        data = await self._request("GET", CHARACTERS_ENDPOINT, params=params)

        fallback_system = system or self.system_id
        summaries = [
            normalize_summary(item, fallback_system)
            for item in _unwrap_listing(data)
            if isinstance(item, dict)
        ]
        logger.info(f"Listed {len(summaries)} Hero Vault characters")
        return summaries

    async def get_character(self, character_id: str) -> RemoteCharacterRecord:
        """
        Fetch a single character's payload.

        Args:
            character_id: Hero Vault character id

        Returns:
            The record; its data is the host's serialized actor
        """
        if not character_id:
            raise InvalidArgument("get_character requires a character id.")
        path = f"{CHARACTERS_ENDPOINT}/{quote(str(character_id), safe='')}"
        payload = await self._request("GET", path)
        return RemoteCharacterRecord.from_response(payload)

    # === Write Operations ===

    async def upload_actor(
        self,
        document: Optional[CharacterDocument],
        options: Optional[UploadOptions] = None,
        *,
        label: Optional[str] = None,
        overwrite: Optional[bool] = None,
    ) -> dict:
        """
        Upload a character document to the vault.

        Args:
            document: Local character to upload
            options: Upload metadata; keyword arguments override its fields
            label: Free-form label, usually the world id
            overwrite: Replace an existing vault entry of the same character

        Returns:
            The service's response, {"id": ...} at least
        """
        if document is None:
            raise InvalidArgument("upload_actor requires a character document.")
        options = options or UploadOptions()

        body = {
            "name": document.name,
            "system": self.system_id or UNKNOWN_SYSTEM,
            "label": options.label if label is None else label,
            "overwrite": options.overwrite if overwrite is None else overwrite,
            "data": document.to_object(),
        }

        result = await self._request("POST", CHARACTERS_ENDPOINT, body=body)
        logger.info(f"Uploaded '{document.name}' to Hero Vault")
        return result if isinstance(result, dict) else {"result": result}


# =============================================================================
# Convenience Functions
# =============================================================================

@asynccontextmanager
async def vault_session(config: Optional[ClientConfig] = None):
    """
    Context manager for a vault session.

    Usage:
        async with vault_session(config) as client:
            await client.list_characters()
    """
    client = VaultClient(config)
    try:
        yield client
    finally:
        await client.close()
