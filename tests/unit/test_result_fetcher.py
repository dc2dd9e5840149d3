"""Tests for ResultContentFetcher using an in-process HTTP transport."""
from __future__ import annotations

import json

import httpx
import pytest

from src.models.task import ArtifactKind, AssembledResult
from src.services.result_fetcher import ResultContentFetcher
from src.utils.retry import RetryConfig, RetryExhaustedError
from tests.mocks.remote_mocks import (
    CHAPTERS_DOCUMENT,
    POLISH_DOCUMENT,
    RESULT_URLS,
    SUMMARY_DOCUMENT,
    TRANSCRIPT_DOCUMENT,
)

DOCUMENTS = {
    RESULT_URLS["transcription"]: TRANSCRIPT_DOCUMENT,
    RESULT_URLS["auto_chapters"]: CHAPTERS_DOCUMENT,
    RESULT_URLS["summarization"]: SUMMARY_DOCUMENT,
    RESULT_URLS["text_polish"]: POLISH_DOCUMENT,
}

FAST_RETRY = RetryConfig(
    max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=False, retriable_exceptions=(httpx.TransportError,)
)


def make_fetcher(handler, retry_config=FAST_RETRY) -> ResultContentFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ResultContentFetcher(client=client, retry_config=retry_config)


def serve_documents(request: httpx.Request) -> httpx.Response:
    document = DOCUMENTS.get(str(request.url))
    if document is None:
        return httpx.Response(404)
    return httpx.Response(200, json=document)


class TestFetchAll:
    """Concurrent assembly of result artifacts."""

    @pytest.mark.asyncio
    async def test_fetches_every_artifact(self):
        fetcher = make_fetcher(serve_documents)
        refs = {kind: RESULT_URLS[kind.value] for kind in ArtifactKind}

        result = await fetcher.fetch_all(refs)

        assert result == AssembledResult(
            transcript=TRANSCRIPT_DOCUMENT,
            chapters=CHAPTERS_DOCUMENT,
            summary=SUMMARY_DOCUMENT,
            polished_text=POLISH_DOCUMENT,
        )
        await fetcher._client.aclose()

    @pytest.mark.asyncio
    async def test_accepts_vendor_keys_and_skips_unknown(self):
        fetcher = make_fetcher(serve_documents)

        result = await fetcher.fetch_all(
            {
                "autoChapters": RESULT_URLS["auto_chapters"],
                "MeetingAssistance": "https://results.example.com/meeting.json",
                "textPolish": "",
            }
        )

        assert result.chapters == CHAPTERS_DOCUMENT
        assert result.transcript is None
        assert result.polished_text is None
        await fetcher._client.aclose()

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_other_artifacts(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if "chapters" in request.url.path:
                return httpx.Response(404, text="gone")
            return serve_documents(request)

        fetcher = make_fetcher(handler)
        result = await fetcher.fetch_all(
            {
                ArtifactKind.TRANSCRIPTION: RESULT_URLS["transcription"],
                ArtifactKind.AUTO_CHAPTERS: RESULT_URLS["auto_chapters"],
            }
        )

        assert result.transcript == TRANSCRIPT_DOCUMENT
        assert result.chapters is None
        await fetcher._client.aclose()

    @pytest.mark.asyncio
    async def test_malformed_url_keeps_other_artifacts(self):
        fetcher = make_fetcher(serve_documents)
        result = await fetcher.fetch_all(
            {
                ArtifactKind.TRANSCRIPTION: RESULT_URLS["transcription"],
                ArtifactKind.AUTO_CHAPTERS: "http://example.com/\x00bad",
            }
        )

        assert result.transcript == TRANSCRIPT_DOCUMENT
        assert result.chapters is None
        await fetcher._client.aclose()

    @pytest.mark.asyncio
    async def test_unexpected_transport_error_keeps_other_artifacts(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if "chapters" in request.url.path:
                raise RuntimeError("boom")
            return serve_documents(request)

        fetcher = make_fetcher(handler)
        result = await fetcher.fetch_all(
            {
                ArtifactKind.TRANSCRIPTION: RESULT_URLS["transcription"],
                ArtifactKind.AUTO_CHAPTERS: RESULT_URLS["auto_chapters"],
            }
        )

        assert result.transcript == TRANSCRIPT_DOCUMENT
        assert result.chapters is None
        await fetcher._client.aclose()

    @pytest.mark.asyncio
    async def test_empty_refs(self):
        fetcher = make_fetcher(serve_documents)
        result = await fetcher.fetch_all({})
        assert result.is_empty()
        await fetcher._client.aclose()


class TestFetchDocument:
    """Single-document retrieval, retry and decoding."""

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"ok": True})

        fetcher = make_fetcher(handler)
        assert await fetcher.fetch_document(RESULT_URLS["transcription"]) == {"ok": True}
        assert len(calls) == 3
        await fetcher._client.aclose()

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(403)

        fetcher = make_fetcher(handler)
        with pytest.raises(httpx.HTTPStatusError):
            await fetcher.fetch_document(RESULT_URLS["transcription"])
        assert len(calls) == 1
        await fetcher._client.aclose()

    @pytest.mark.asyncio
    async def test_transport_errors_exhaust_retries(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = make_fetcher(handler)
        with pytest.raises(RetryExhaustedError) as exc_info:
            await fetcher.fetch_document(RESULT_URLS["transcription"])
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_exception, httpx.ConnectError)
        await fetcher._client.aclose()

    @pytest.mark.asyncio
    async def test_json_body_without_json_content_type(self):
        fetcher = make_fetcher(
            lambda request: httpx.Response(
                200, content=json.dumps({"a": 1}).encode(), headers={"content-type": "text/plain"}
            )
        )
        assert await fetcher.fetch_document("https://results.example.com/x") == {"a": 1}
        await fetcher._client.aclose()

    @pytest.mark.asyncio
    async def test_plain_text_body(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, text="plain transcript"))
        assert await fetcher.fetch_document("https://results.example.com/x") == "plain transcript"
        await fetcher._client.aclose()


class TestLifecycle:
    """Ownership of the HTTP client."""

    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self):
        fetcher = ResultContentFetcher()
        async with fetcher:
            pass
        assert fetcher._client.is_closed

    @pytest.mark.asyncio
    async def test_shared_client_is_left_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(serve_documents))
        fetcher = ResultContentFetcher(client=client)
        await fetcher.aclose()
        assert not client.is_closed
        await client.aclose()

    def test_from_config(self):
        from src.config import Config

        fetcher = ResultContentFetcher.from_config(Config(fetch_max_attempts=4, fetch_timeout=5.0))
        assert fetcher.retry_config.max_attempts == 4
        assert fetcher._client.timeout.read == 5.0
