"""
AI character catalog lookups.

Maps an AI character id to its server-side configuration (model, assigned
tools). The HTTP implementation talks to the gateway's REST API with httpx
and can log request/response traffic through httpx event hooks.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import httpx

from pydantic import ValidationError

from panelstream.core.constants import Settings, get_settings
from panelstream.models.character_models import CharacterConfig
from panelstream.models.error_models import CharacterCatalogError, CharacterNotFoundError
from panelstream.utils.logger import logger

CHARACTERS_PATH = "/api/v1/ai-characters"


@runtime_checkable
class CharacterCatalog(Protocol):
    """Lookup of AI character configuration by id."""

    async def get_character(self, character_id: str) -> CharacterConfig:
        """Return the character's configuration.

        Raises:
            CharacterNotFoundError: If the id is unknown
            CharacterCatalogError: If the lookup fails for any other reason
        """
        ...


class _HttpTrafficLogger:
    """httpx event hooks logging catalog requests at debug level."""

    _SENSITIVE_HEADERS = ("authorization", "api-key", "x-api-key")

    async def log_request(self, request: httpx.Request) -> None:
        logger.debug(
            f"HTTP Request: {request.method} {request.url}",
            headers=self._sanitize_headers(dict(request.headers)),
        )

    async def log_response(self, response: httpx.Response) -> None:
        logger.debug(f"HTTP Response: {response.status_code} {response.request.method} {response.request.url}")

    def _sanitize_headers(self, headers: dict[str, str]) -> dict[str, str]:
        sanitized = headers.copy()
        for key in list(sanitized):
            if key.lower() in self._SENSITIVE_HEADERS:
                value = sanitized[key]
                # Show last 4 chars only
                sanitized[key] = f"***{value[-4:]}" if len(value) > 4 else "***"
        return sanitized


def create_catalog_client(settings: Settings, enable_logging: bool = False) -> httpx.AsyncClient:
    """Create the httpx client used for catalog lookups.

    Args:
        settings: Source of base URL, token and timeout
        enable_logging: Attach request/response logging hooks

    Returns:
        Configured httpx.AsyncClient
    """
    headers: dict[str, str] = {"Accept": "application/json"}
    if settings.access_token:
        headers["Authorization"] = f"Bearer {settings.access_token}"

    event_hooks: dict[str, list[Any]] = {}
    if enable_logging:
        traffic_logger = _HttpTrafficLogger()
        event_hooks = {"request": [traffic_logger.log_request], "response": [traffic_logger.log_response]}

    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        headers=headers,
        timeout=httpx.Timeout(settings.catalog_timeout),
        event_hooks=event_hooks,
    )


class HttpCharacterCatalog:
    """CharacterCatalog backed by ``GET {api_base_url}/api/v1/ai-characters/{id}``.

    Successful lookups are cached for the lifetime of the catalog.
    """

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self._owns_client = client is None
        self._client = client or create_catalog_client(self.settings, enable_logging=self.settings.debug)
        self._cache: dict[str, CharacterConfig] = {}

    async def get_character(self, character_id: str) -> CharacterConfig:
        cached = self._cache.get(character_id)
        if cached is not None:
            return cached

        try:
            response = await self._client.get(f"{CHARACTERS_PATH}/{character_id}")
        except httpx.HTTPError as e:
            logger.error(f"Character lookup failed for {character_id}: {e}")
            raise CharacterCatalogError(f"Character lookup failed: {e}") from e

        if response.status_code == httpx.codes.NOT_FOUND:
            raise CharacterNotFoundError(f"AI character '{character_id}' not found")

        try:
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPStatusError, ValueError) as e:
            logger.error(f"Character lookup failed for {character_id}: {e}")
            raise CharacterCatalogError(f"Character lookup failed: {e}") from e

        # The API wraps single resources in {"data": {...}}
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]

        try:
            character = CharacterConfig.model_validate(body)
        except ValidationError as e:
            raise CharacterCatalogError(f"Invalid character payload for '{character_id}': {e}") from e

        self._cache[character_id] = character
        logger.debug(f"Loaded AI character {character.id} ({character.name}) with {len(character.tools)} tools")
        return character

    def invalidate(self, character_id: str | None = None) -> None:
        """Drop one cached character, or all of them."""
        if character_id is None:
            self._cache.clear()
        else:
            self._cache.pop(character_id, None)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["CHARACTERS_PATH", "CharacterCatalog", "HttpCharacterCatalog", "create_catalog_client"]
