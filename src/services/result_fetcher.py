"""Concurrent download of a completed job's result artifacts.

Each artifact URL is fetched independently; a failure is logged and leaves
the matching AssembledResult field empty without affecting the others.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Mapping, Optional, Tuple

import httpx

from ..models.task import ArtifactKind, AssembledResult
from ..utils.logger import get_logger
from ..utils.retry import RetryConfig, RetryExhaustedError, retry_async

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class ResultContentFetcher:
    """Fetches artifact documents over HTTP with per-artifact retry.

    Transport errors and 408/429/5xx responses are retried with backoff;
    other HTTP errors fail that artifact immediately.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        retry_config: Optional[RetryConfig] = None,
        verify_ssl: bool = True,
    ):
        """Initialize the fetcher.

        Args:
            client: Shared HTTP client; one is created (and owned) when omitted
            timeout_seconds: Per-request timeout for an owned client
            retry_config: Retry policy per artifact (defaults to 2 attempts)
            verify_ssl: TLS verification for an owned client
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            follow_redirects=True,
            verify=verify_ssl,
        )
        self.retry_config = retry_config or RetryConfig(
            max_attempts=2,
            base_delay=0.5,
            max_delay=5.0,
            retriable_exceptions=(httpx.TransportError,),
        )

    @classmethod
    def from_config(cls, config, client: Optional[httpx.AsyncClient] = None) -> "ResultContentFetcher":
        """Build a fetcher from a ``Config`` instance."""
        return cls(
            client=client,
            timeout_seconds=config.fetch_timeout,
            verify_ssl=config.fetch_verify_ssl,
            retry_config=RetryConfig(
                max_attempts=config.fetch_max_attempts,
                base_delay=0.5,
                max_delay=5.0,
                retriable_exceptions=(httpx.TransportError,),
            ),
        )

    async def fetch_all(self, result_refs: Mapping[Any, str]) -> AssembledResult:
        """Download every present artifact concurrently.

        Args:
            result_refs: Artifact kind (enum or vendor key) to URL

        Returns:
            AssembledResult with whichever artifacts could be retrieved
        """
        assembled = AssembledResult()
        targets = []
        for key, url in (result_refs or {}).items():
            kind = ArtifactKind.parse(key)
            if kind is None or not url:
                continue
            targets.append((kind, url))

        if not targets:
            return assembled

        outcomes = await asyncio.gather(*(self._fetch_one(kind, url) for kind, url in targets))
        succeeded = 0
        for kind, content in outcomes:
            if content is not None:
                assembled.set_artifact(kind, content)
                succeeded += 1

        if succeeded < len(targets):
            logger.warning(f"Fetched {succeeded}/{len(targets)} result artifacts")
        else:
            logger.info(f"Fetched all {succeeded} result artifacts")
        return assembled

    async def fetch_document(self, url: str) -> Any:
        """Fetch one document with retry, decoding JSON when possible.

        Raises:
            RetryExhaustedError: If retriable failures used up every attempt
            httpx.HTTPStatusError: For non-retriable HTTP errors
        """

        @retry_async(config=self.retry_config)
        async def _get() -> httpx.Response:
            response = await self._client.get(url)
            response.raise_for_status()
            return response

        response = await _get()
        return _decode(response)

    async def _fetch_one(self, kind: ArtifactKind, url: str) -> Tuple[ArtifactKind, Any]:
        try:
            return kind, await self.fetch_document(url)
        except RetryExhaustedError as e:
            logger.warning(f"Failed to fetch {kind.value} content after {e.attempts} attempts: {e.last_exception}")
        except httpx.HTTPError as e:
            logger.warning(f"Failed to fetch {kind.value} content: {e}")
        except ValueError as e:
            logger.warning(f"Could not decode {kind.value} content: {e}")
        except Exception as e:
            logger.warning(f"Unexpected error fetching {kind.value} content: {e}")
        return kind, None

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ResultContentFetcher":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()


def _decode(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    text = response.text
    if "json" in content_type:
        return response.json()
    try:
        return json.loads(text)
    except ValueError:
        return text

