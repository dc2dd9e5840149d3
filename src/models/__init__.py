"""Data models for the task orchestration layer.

This module provides the normalized job record, the remote response
envelope, assembled result content and the per-operation option structs.
"""

from .task import (
    ArtifactKind,
    AssembledResult,
    CreateTaskOptions,
    InspectOptions,
    JobRecord,
    PollOptions,
    RemoteResponse,
    TaskOperation,
    TaskStatus,
    TaskType,
)

__all__ = [
    "ArtifactKind",
    "AssembledResult",
    "CreateTaskOptions",
    "InspectOptions",
    "JobRecord",
    "PollOptions",
    "RemoteResponse",
    "TaskOperation",
    "TaskStatus",
    "TaskType",
]
