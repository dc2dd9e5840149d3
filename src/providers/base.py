"""Abstract contract for remote task API clients."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models.task import RemoteResponse

logger = logging.getLogger(__name__)


class RemoteTaskClient(ABC):
    """Vendor call surface used by the orchestrator.

    Implementations translate between the vendor SDK and ``RemoteResponse``.
    Payload conventions for ``RemoteResponse.data``:

    - ``submit_job`` / ``fetch_job_status``: ``job_id``, ``status`` and, for
      completed jobs, ``result_refs`` (artifact kind -> URL) plus
      ``error_message`` for failed ones
    - ``create_named_word_list``: vendor-defined, typically ``vocabulary_id``

    A non-"0" ``code`` is a remote-side rejection. Transport problems are
    raised as exceptions; the orchestrator wraps both into RemoteServiceError.
    """

    @abstractmethod
    async def submit_job(
        self,
        task_type: str,
        input: Dict[str, Any],
        parameters: Dict[str, Any],
        operation: Optional[str] = None,
    ) -> RemoteResponse:
        """Submit a job.

        Args:
            task_type: "offline" or "realtime"
            input: Job input (file URL, language, audio format, ...)
            parameters: Feature toggles
            operation: "stop" to end a realtime job, None for a new job

        Returns:
            Response whose data carries the job id and initial status
        """

    @abstractmethod
    async def fetch_job_status(self, job_id: str) -> RemoteResponse:
        """Fetch the current status of a job."""

    @abstractmethod
    async def create_named_word_list(self, name: str, words: List[str]) -> RemoteResponse:
        """Register a custom vocabulary list under ``name``."""

    def get_provider_name(self) -> str:
        """Human-readable name of the backing service."""
        return type(self).__name__

    async def aclose(self) -> None:
        """Release client resources. The default has nothing to release."""
