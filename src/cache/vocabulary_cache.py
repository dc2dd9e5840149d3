"""Name-keyed cache for custom vocabulary (hot word) lists.

Creating a word list on the remote side is idempotent by name for our
purposes, so a successful creation is remembered for a week and repeated
requests for the same name never reach the remote API.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Sequence

from ..exceptions import RemoteServiceError, TaskValidationError
from ..models.task import RemoteResponse
from .ttl_cache import TTLCache

if TYPE_CHECKING:
    from ..providers.base import RemoteTaskClient

logger = logging.getLogger(__name__)

VOCABULARY_TTL = 7 * 24 * 60 * 60
KEY_PREFIX = "vocabulary:"


def vocabulary_key(name: str) -> str:
    return f"{KEY_PREFIX}{name}"


class VocabularyCache:
    """Creates vocabulary lists through the remote client, caching results by name."""

    def __init__(
        self,
        cache: TTLCache,
        client: "RemoteTaskClient",
        ttl: float = VOCABULARY_TTL,
    ):
        self.cache = cache
        self.client = client
        self.ttl = ttl

    async def get_or_create(self, name: str, words: Sequence[str]) -> RemoteResponse:
        """Return the cached creation response for ``name`` or create the list remotely.

        Args:
            name: Vocabulary list name (the cache identity)
            words: Words to register

        Returns:
            Remote response of the (possibly earlier) creation call

        Raises:
            TaskValidationError: If name or words are missing
            RemoteServiceError: If the remote call fails; failures are not cached
        """
        name = (name or "").strip()
        if not name:
            raise TaskValidationError("Vocabulary name is required")
        word_list = _clean_words(words)
        if not word_list:
            raise TaskValidationError(
                f"Vocabulary '{name}' needs at least one word", data={"name": name}
            )

        key = vocabulary_key(name)
        if self.cache.has(key):
            logger.info(f"Using cached vocabulary: {name}")

        async def create() -> RemoteResponse:
            return await self._create(name, word_list)

        return await self.cache.get_or_set(key, create, self.ttl)

    def get(self, name: str) -> Optional[RemoteResponse]:
        """Cached creation response for ``name``, if any."""
        return self.cache.get(vocabulary_key(name))

    def invalidate(self, name: str) -> bool:
        """Forget a cached vocabulary so the next request re-creates it."""
        return self.cache.delete(vocabulary_key(name))

    async def _create(self, name: str, words: List[str]) -> RemoteResponse:
        logger.info(f"Creating vocabulary '{name}' with {len(words)} words")
        try:
            response = await self.client.create_named_word_list(name, words)
        except RemoteServiceError:
            raise
        except Exception as e:
            logger.error(f"Failed to create vocabulary '{name}': {e}")
            raise RemoteServiceError(
                f"Failed to create vocabulary: {e}",
                original_error=e,
                data={"name": name, "word_count": len(words)},
            ) from e

        if not response.is_success:
            logger.error(f"Vocabulary '{name}' rejected: [{response.code}] {response.message}")
            raise RemoteServiceError(
                f"Remote API returned error: {response.message or response.code}",
                response=response,
                data={"name": name, "code": response.code, "request_id": response.request_id},
            )
        return response


def _clean_words(words: Optional[Sequence[str]]) -> List[str]:
    if not words or isinstance(words, str):
        return []
    return [str(w).strip() for w in words if w is not None and str(w).strip()]
