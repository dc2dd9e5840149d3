"""Data models for remote transcription tasks.

These models describe the normalized shape the orchestrator caches and
returns, independent of the vendor SDK objects underneath:

- JobRecord: the cached view of one remote job
- RemoteResponse: the envelope every Remote Task Client call returns
- AssembledResult: result artifacts downloaded for a completed job
- CreateTaskOptions / InspectOptions / PollOptions: per-operation settings
  validated once at the orchestrator boundary
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

SUCCESS_CODE = "0"


class TaskType(Enum):
    """Kinds of remote job the vendor accepts."""

    OFFLINE = "offline"  # Recorded file transcription
    REALTIME = "realtime"  # Streaming session


class TaskOperation(Enum):
    """Special submission operations."""

    STOP = "stop"  # Cancel-style submission for realtime jobs


class TaskStatus(Enum):
    """Normalized job lifecycle.

    Transitions only move forward: PENDING -> ONGOING -> {COMPLETED, FAILED}.
    """

    PENDING = "PENDING"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions can happen."""
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    @property
    def rank(self) -> int:
        """Position in the lifecycle; both terminal states share the last rank."""
        return _STATUS_RANK[self]

    def can_transition_to(self, other: "TaskStatus") -> bool:
        """Check whether moving from this status to ``other`` goes forward."""
        if self.is_terminal:
            return other is self
        return other.rank >= self.rank

    @classmethod
    def normalize(cls, raw: Any) -> "TaskStatus":
        """Map a vendor status string onto the normalized lifecycle.

        Args:
            raw: Status reported by the remote API (any case), or a TaskStatus

        Returns:
            Normalized status; unknown values map to PENDING
        """
        if isinstance(raw, TaskStatus):
            return raw
        if raw is None:
            return cls.PENDING
        key = str(raw).strip().upper()
        status = _STATUS_ALIASES.get(key)
        if status is None:
            logger.warning(f"Unknown remote task status '{raw}', treating as PENDING")
            return cls.PENDING
        return status


_STATUS_RANK = {
    TaskStatus.PENDING: 0,
    TaskStatus.ONGOING: 1,
    TaskStatus.COMPLETED: 2,
    TaskStatus.FAILED: 2,
}

_STATUS_ALIASES = {
    "PENDING": TaskStatus.PENDING,
    "CREATED": TaskStatus.PENDING,
    "QUEUEING": TaskStatus.PENDING,
    "QUEUED": TaskStatus.PENDING,
    "ONGOING": TaskStatus.ONGOING,
    "RUNNING": TaskStatus.ONGOING,
    "PROCESSING": TaskStatus.ONGOING,
    "COMPLETED": TaskStatus.COMPLETED,
    "COMPLETE": TaskStatus.COMPLETED,
    "SUCCESS": TaskStatus.COMPLETED,
    "FAILED": TaskStatus.FAILED,
    "FAIL": TaskStatus.FAILED,
    "ERROR": TaskStatus.FAILED,
}


class ArtifactKind(Enum):
    """Result artifacts a completed job can expose as downloadable URLs."""

    TRANSCRIPTION = "transcription"
    AUTO_CHAPTERS = "auto_chapters"
    SUMMARIZATION = "summarization"
    TEXT_POLISH = "text_polish"

    @property
    def result_field(self) -> str:
        """Name of the AssembledResult field this artifact fills."""
        return _ARTIFACT_FIELDS[self]

    @classmethod
    def parse(cls, raw: Any) -> Optional["ArtifactKind"]:
        """Resolve an artifact kind from an enum, snake_case or camelCase key.

        Returns:
            Matching kind, or None for artifacts this layer does not assemble
        """
        if isinstance(raw, ArtifactKind):
            return raw
        key = str(raw).strip()
        return _ARTIFACT_ALIASES.get(key) or _ARTIFACT_ALIASES.get(key.lower())


_ARTIFACT_FIELDS = {
    ArtifactKind.TRANSCRIPTION: "transcript",
    ArtifactKind.AUTO_CHAPTERS: "chapters",
    ArtifactKind.SUMMARIZATION: "summary",
    ArtifactKind.TEXT_POLISH: "polished_text",
}

_ARTIFACT_ALIASES = {
    "transcription": ArtifactKind.TRANSCRIPTION,
    "auto_chapters": ArtifactKind.AUTO_CHAPTERS,
    "autoChapters": ArtifactKind.AUTO_CHAPTERS,
    "autochapters": ArtifactKind.AUTO_CHAPTERS,
    "summarization": ArtifactKind.SUMMARIZATION,
    "text_polish": ArtifactKind.TEXT_POLISH,
    "textPolish": ArtifactKind.TEXT_POLISH,
    "textpolish": ArtifactKind.TEXT_POLISH,
}


def parse_result_refs(raw: Optional[Mapping[Any, Any]]) -> Optional[Dict[ArtifactKind, str]]:
    """Keep only known artifact kinds that carry a non-empty URL."""
    if not raw:
        return None
    refs: Dict[ArtifactKind, str] = {}
    for key, url in raw.items():
        kind = ArtifactKind.parse(key)
        if kind is None:
            logger.debug(f"Ignoring unsupported result artifact '{key}'")
            continue
        if url:
            refs[kind] = str(url)
    return refs or None


@dataclass
class RemoteResponse:
    """Envelope returned by every Remote Task Client call.

    Attributes:
        code: "0" on success, anything else is a remote-side rejection
        message: Vendor message accompanying the code
        request_id: Vendor request identifier for support tickets
        data: Call-specific payload
    """

    code: str
    message: str = ""
    request_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return str(self.code) == SUCCESS_CODE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "request_id": self.request_id,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RemoteResponse":
        """Create from a response body dict (snake_case or camelCase keys)."""
        return cls(
            code=str(data.get("code", "")),
            message=data.get("message") or "",
            request_id=data.get("request_id") or data.get("requestId"),
            data=dict(data.get("data") or {}),
        )


@dataclass
class AssembledResult:
    """Downloaded content of a completed job's result artifacts.

    Fields stay None when the artifact was absent or could not be retrieved.
    """

    transcript: Any = None
    chapters: Any = None
    summary: Any = None
    polished_text: Any = None

    def set_artifact(self, kind: ArtifactKind, content: Any) -> None:
        """Store content under the field matching ``kind``."""
        setattr(self, kind.result_field, content)

    def is_empty(self) -> bool:
        return all(
            getattr(self, name) is None for name in _ARTIFACT_FIELDS.values()
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "transcript": self.transcript,
            "chapters": self.chapters,
            "summary": self.summary,
            "polished_text": self.polished_text,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AssembledResult":
        """Create from dictionary."""
        return cls(
            transcript=data.get("transcript"),
            chapters=data.get("chapters"),
            summary=data.get("summary"),
            polished_text=data.get("polished_text"),
        )


@dataclass(frozen=True)
class JobRecord:
    """Normalized job view cached and returned by the orchestrator.

    Records are immutable; refreshes produce new records via ``evolve``.

    Attributes:
        job_id: Remote job identifier
        status: Normalized lifecycle status
        fingerprint: Idempotency key the job was submitted under, if any
        cached_at: Epoch seconds when this record was produced
        result_refs: Artifact URLs exposed by a completed job
        error_message: Remote failure reason for FAILED jobs
        request_id: Vendor request id of the call that produced the record
        content: Downloaded artifacts, when requested
    """

    job_id: str
    status: TaskStatus
    fingerprint: Optional[str] = None
    cached_at: float = field(default_factory=time.time)
    result_refs: Optional[Dict[ArtifactKind, str]] = None
    error_message: Optional[str] = None
    request_id: Optional[str] = None
    content: Optional[AssembledResult] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def age_seconds(self, now: Optional[float] = None) -> float:
        """Seconds elapsed since the record was produced."""
        return (time.time() if now is None else now) - self.cached_at

    def evolve(self, **changes: Any) -> "JobRecord":
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "fingerprint": self.fingerprint,
            "cached_at": datetime.fromtimestamp(self.cached_at).isoformat(),
            "result_refs": (
                {kind.value: url for kind, url in self.result_refs.items()}
                if self.result_refs
                else None
            ),
            "error_message": self.error_message,
            "request_id": self.request_id,
            "content": self.content.to_dict() if self.content else None,
        }

    @classmethod
    def from_response(
        cls,
        response: RemoteResponse,
        fingerprint: Optional[str] = None,
        cached_at: Optional[float] = None,
        job_id: Optional[str] = None,
    ) -> "JobRecord":
        """Normalize a remote response into a JobRecord.

        Accepts the Remote Task Client's snake_case payload keys and the
        vendor's camelCase ones (``taskId``, ``taskStatus``, ``result``).

        Args:
            response: Successful remote response
            fingerprint: Idempotency key to attach
            cached_at: Record timestamp (defaults to now)
            job_id: Fallback id when the payload omits it

        Raises:
            ValueError: If neither the payload nor the caller supplies a job id
        """
        data = response.data
        job_id = data.get("job_id") or data.get("taskId") or data.get("task_id") or job_id
        if not job_id:
            raise ValueError("Remote response does not contain a job id")

        return cls(
            job_id=str(job_id),
            status=TaskStatus.normalize(data.get("status") or data.get("taskStatus")),
            fingerprint=fingerprint,
            cached_at=time.time() if cached_at is None else cached_at,
            result_refs=parse_result_refs(data.get("result_refs") or data.get("result")),
            error_message=data.get("error_message") or data.get("errorMessage"),
            request_id=response.request_id,
        )


class CreateTaskOptions(BaseModel):
    """Settings for one ``create_task`` call.

    Attributes:
        type: Job kind ("offline" or "realtime")
        input: Job input parameters (file URL, language, audio format, ...)
        parameters: Feature toggles forwarded to the vendor
        fingerprint_key: Idempotency key; identical keys reuse the cached job
        cache_ttl: Cache lifetime in seconds (None uses the policy default)
        operation: "stop" for cancel-style submissions, which skip the cache
    """

    model_config = ConfigDict(frozen=True)

    type: TaskType
    input: Dict[str, Any]
    parameters: Dict[str, Any] = Field(default_factory=dict)
    fingerprint_key: Optional[str] = None
    cache_ttl: Optional[float] = Field(default=None, ge=0)
    operation: Optional[TaskOperation] = None

    @field_validator("parameters", mode="before")
    @classmethod
    def default_parameters(cls, v: Any) -> Any:
        """Treat an explicit None as no feature toggles."""
        return {} if v is None else v

    @field_validator("fingerprint_key")
    @classmethod
    def strip_fingerprint(cls, v: Optional[str]) -> Optional[str]:
        """Blank fingerprints disable caching rather than sharing one key."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def is_cancel(self) -> bool:
        return self.operation is TaskOperation.STOP


class InspectOptions(BaseModel):
    """Settings for one ``get_task_info`` call.

    Attributes:
        cache_key: Caller-supplied cache key (defaults to the job-id key)
        cache_ttl: Cache lifetime override in seconds
        fetch_content: Download result artifacts for completed jobs
        force_fresh: Skip the cache and always ask the remote API
    """

    model_config = ConfigDict(frozen=True)

    cache_key: Optional[str] = None
    cache_ttl: Optional[float] = Field(default=None, ge=0)
    fetch_content: bool = False
    force_fresh: bool = False


class PollOptions(BaseModel):
    """Settings for one ``poll_until_complete`` call."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=30, ge=1)
    interval: float = Field(default=3.0, ge=0)
    fetch_content: bool = True
