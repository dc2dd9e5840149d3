"""Transcription workflows built on the task orchestrator."""

from __future__ import annotations

import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..cache.ttl_cache import TTLCache
from ..cache.vocabulary_cache import VocabularyCache
from ..exceptions import TaskValidationError
from ..models.task import JobRecord, PollOptions, RemoteResponse, TaskStatus
from ..providers.base import RemoteTaskClient
from ..utils.fingerprint import content_fingerprint
from ..utils.logger import get_logger
from .rate_limiter import RateLimiter
from .result_fetcher import ResultContentFetcher
from .task_orchestrator import TaskCachePolicy, TaskOrchestrator

logger = get_logger(__name__)

TRANSCRIPTION_TASK_TTL = 60 * 60

# Summary document sections, with the vendor's names as fallbacks
_SUMMARY_SECTIONS = {
    "paragraphs": ("paragraphs", "ParagraphSummary"),
    "conversations": ("conversations", "ConversationalSummary"),
    "questions_answering": ("questions_answering", "QuestionsAnsweringSummary"),
    "mind_map": ("mind_map", "MindMapSummary"),
}


class TranscriptionService:
    """Offline and realtime transcription workflows.

    This service shapes job input and parameters for common cases and leaves
    caching, throttling and polling to the TaskOrchestrator.
    """

    def __init__(self, orchestrator: TaskOrchestrator, vocabulary: VocabularyCache):
        """Initialize the transcription service.

        Args:
            orchestrator: Task orchestrator used for all job operations
            vocabulary: Vocabulary cache sharing the orchestrator's client
        """
        self.orchestrator = orchestrator
        self.vocabulary = vocabulary

    @classmethod
    def from_config(
        cls,
        config,
        client: RemoteTaskClient,
        fetcher: Optional[ResultContentFetcher] = None,
    ) -> "TranscriptionService":
        """Wire a service and its collaborators from a ``Config``.

        Args:
            config: Application configuration
            client: Remote task client (for example ``TingwuClient.from_config(config)``)
            fetcher: Result content fetcher; built from config when omitted

        Returns:
            Service owning a fresh cache and rate limiter
        """
        cache = TTLCache(cleanup_interval=config.cache_cleanup_interval or None, name="tasks")
        orchestrator = TaskOrchestrator(
            client=client,
            cache=cache,
            rate_limiter=RateLimiter.from_config(config),
            fetcher=fetcher or ResultContentFetcher.from_config(config),
            policy=TaskCachePolicy.from_config(config),
            poll_defaults=PollOptions(
                max_attempts=config.poll_max_attempts, interval=config.poll_interval
            ),
        )
        vocabulary = VocabularyCache(cache, client, ttl=config.vocabulary_cache_ttl)
        return cls(orchestrator, vocabulary)

    async def create_transcription_task(
        self,
        file_url: str,
        source_language: str = "cn",
        parameters: Optional[Mapping[str, Any]] = None,
        extra_input: Optional[Mapping[str, Any]] = None,
    ) -> JobRecord:
        """Submit an offline transcription of a recorded file.

        Submissions of the same URL within an hour return the same job.

        Args:
            file_url: Publicly readable URL of the audio/video file
            source_language: Language code of the recording
            parameters: Feature toggles forwarded to the remote API
            extra_input: Additional input fields (task_key, language hints, ...)

        Returns:
            Job record of the new or reused job
        """
        if not file_url or not str(file_url).strip():
            raise TaskValidationError("Missing required parameter: file_url")

        task_input: Dict[str, Any] = {"source_language": source_language, "file_url": file_url}
        task_input.update(extra_input or {})
        return await self.orchestrator.create_task(
            type="offline",
            input=task_input,
            parameters=dict(parameters or {}),
            fingerprint_key=content_fingerprint(file_url, namespace="transcription"),
            cache_ttl=TRANSCRIPTION_TASK_TTL,
        )

    async def create_realtime_task(
        self,
        source_language: str,
        audio_format: str,
        sample_rate: int,
        task_key: Optional[str] = None,
        language_hints: Optional[Sequence[str]] = None,
        output_level: int = 2,
        diarization_enabled: bool = False,
        speaker_count: Optional[int] = None,
        phrase_id: Optional[str] = None,
        translation_enabled: bool = False,
        target_languages: Optional[Sequence[str]] = None,
        translation_output_level: int = 2,
        auto_chapters_enabled: bool = False,
        summarization_enabled: bool = False,
        summarization_types: Optional[Sequence[str]] = None,
        text_polish_enabled: bool = False,
        custom_prompt_enabled: bool = False,
    ) -> JobRecord:
        """Start a realtime transcription session.

        Sessions are idempotent by ``task_key``; one is generated from the
        current time when omitted.

        Returns:
            Job record of the new or reused session
        """
        missing = [
            name
            for name, value in (
                ("source_language", source_language),
                ("audio_format", audio_format),
                ("sample_rate", sample_rate),
            )
            if not value
        ]
        if missing:
            raise TaskValidationError(
                f"Missing required parameters: {', '.join(missing)}", data={"missing": missing}
            )

        task_key = task_key or f"realtime-{int(time.time() * 1000)}"
        task_input: Dict[str, Any] = {
            "source_language": source_language,
            "format": audio_format,
            "sample_rate": sample_rate,
            "task_key": task_key,
        }
        if language_hints:
            task_input["language_hints"] = list(language_hints)

        transcription: Dict[str, Any] = {
            "output_level": output_level,
            "diarization_enabled": diarization_enabled,
        }
        if phrase_id:
            transcription["phrase_id"] = phrase_id
        if diarization_enabled and speaker_count:
            transcription["diarization"] = {"speaker_count": speaker_count}

        parameters: Dict[str, Any] = {"transcription": transcription}
        if translation_enabled:
            parameters["translation_enabled"] = True
            parameters["translation"] = {
                "output_level": translation_output_level,
                "target_languages": list(target_languages or ["cn"]),
            }
        if auto_chapters_enabled:
            parameters["auto_chapters_enabled"] = True
        if summarization_enabled:
            parameters["summarization_enabled"] = True
            if summarization_types:
                parameters["summarization"] = {"types": list(summarization_types)}
        if text_polish_enabled:
            parameters["text_polish_enabled"] = True
        if custom_prompt_enabled:
            parameters["custom_prompt_enabled"] = True

        return await self.orchestrator.create_task(
            type="realtime",
            input=task_input,
            parameters=parameters,
            fingerprint_key=f"realtime:{task_key}",
            cache_ttl=TRANSCRIPTION_TASK_TTL,
        )

    async def stop_realtime_task(self, job_id: str) -> JobRecord:
        """End a realtime session. Never served from cache."""
        if not job_id:
            raise TaskValidationError("Missing required parameter: job_id")
        record = await self.orchestrator.create_task(
            type="realtime",
            input={"task_id": job_id},
            parameters={},
            operation="stop",
        )
        return record

    async def get_task_result(self, job_id: str, fetch_content: bool = False) -> JobRecord:
        """Current record of a job, optionally with downloaded result content."""
        return await self.orchestrator.get_task_info(job_id, fetch_content=fetch_content)

    async def wait_for_task(self, job_id: str, **poll_options: Any) -> JobRecord:
        """Poll a job until it completes; see ``TaskOrchestrator.poll_until_complete``."""
        return await self.orchestrator.poll_until_complete(job_id, **poll_options)

    async def get_realtime_task_result(self, job_id: str) -> Dict[str, Any]:
        """Realtime session result flattened for display.

        Returns:
            ``{"status", "job_id", "summary"}`` where summary holds whichever of
            chapters, paragraphs, conversations, questions_answering, mind_map
            and text_polish are available
        """
        record = await self.orchestrator.get_task_info(job_id, fetch_content=True)
        result: Dict[str, Any] = {
            "status": record.status.value,
            "job_id": record.job_id,
            "summary": {},
        }
        if record.status is not TaskStatus.COMPLETED or record.content is None:
            return result

        content = record.content
        summary = result["summary"]
        if content.chapters is not None:
            summary["chapters"] = content.chapters
        if isinstance(content.summary, Mapping):
            sections = content.summary.get("Summarization", content.summary)
            if not isinstance(sections, Mapping):
                sections = content.summary
            for name, keys in _SUMMARY_SECTIONS.items():
                for key in keys:
                    if sections.get(key) is not None:
                        summary[name] = sections[key]
                        break
        if content.polished_text is not None:
            summary["text_polish"] = content.polished_text
        return result

    async def create_vocabulary(self, name: str, words: List[str]) -> RemoteResponse:
        """Register a vocabulary list, reusing a creation from the last 7 days."""
        return await self.vocabulary.get_or_create(name, words)

    async def close(self) -> None:
        """Stop the cache sweep and close owned HTTP resources."""
        await self.orchestrator.aclose()
        self.orchestrator.cache.destroy()
