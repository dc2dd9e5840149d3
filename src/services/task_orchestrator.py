"""Task lifecycle coordination over the remote task API.

The orchestrator sits between callers and a ``RemoteTaskClient``:

- ``create_task`` submits jobs idempotently by fingerprint and caches the
  normalized record under both the fingerprint and the job id
- ``get_task_info`` serves terminal or recently cached records from the
  cache and otherwise refreshes them, choosing a TTL by status
- ``poll_until_complete`` drives a job to a terminal state with a bounded
  number of forced refreshes

Every remote call is throttled through the shared RateLimiter.

Example:
    ```python
    orchestrator = TaskOrchestrator(client, TTLCache(), RateLimiter())
    record = await orchestrator.create_task(
        type="offline",
        input={"file_url": "https://example.com/a.mp3"},
        fingerprint_key=content_fingerprint("https://example.com/a.mp3"),
    )
    record = await orchestrator.poll_until_complete(record.job_id)
    ```
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..cache.ttl_cache import TTLCache
from ..exceptions import (
    PollTimeoutError,
    RemoteServiceError,
    TaskError,
    TaskFailedError,
    TaskValidationError,
)
from ..models.task import (
    CreateTaskOptions,
    InspectOptions,
    JobRecord,
    PollOptions,
    RemoteResponse,
    TaskStatus,
)
from ..providers.base import RemoteTaskClient
from ..utils.logger import get_logger
from .rate_limiter import CREATE, INSPECT, RateLimiter
from .result_fetcher import ResultContentFetcher

logger = get_logger(__name__)

OptionsT = TypeVar("OptionsT", bound=BaseModel)


def job_key(job_id: str) -> str:
    """Cache key of a job record looked up by id."""
    return f"task:{job_id}"


def fingerprint_key(fingerprint: str) -> str:
    """Cache key of a job record looked up by submission fingerprint."""
    return f"fingerprint:{fingerprint}"


@dataclass(frozen=True)
class TaskCachePolicy:
    """How long job records stay cached, in seconds.

    Attributes:
        task_ttl: Lifetime of records cached at submission time
        completed_ttl: Lifetime of terminal (COMPLETED/FAILED) records
        active_ttl: Lifetime of refreshed non-terminal records
        fresh_window: Age below which a non-terminal record is served without a refresh
    """

    task_ttl: float = 3600
    completed_ttl: float = 86400
    active_ttl: float = 300
    fresh_window: float = 30

    @classmethod
    def from_config(cls, config) -> "TaskCachePolicy":
        return cls(
            task_ttl=config.task_cache_ttl,
            completed_ttl=config.completed_task_cache_ttl,
            active_ttl=config.active_task_cache_ttl,
            fresh_window=config.cache_fresh_window,
        )

    def ttl_for(self, status: TaskStatus) -> float:
        return self.completed_ttl if status.is_terminal else self.active_ttl


def resolve_options(
    model: Type[OptionsT],
    options: Union[OptionsT, Mapping[str, Any], None],
    overrides: Mapping[str, Any],
    defaults: Optional[OptionsT] = None,
) -> OptionsT:
    """Build a validated option struct from defaults, an options object and keyword overrides.

    Keyword overrides that are None are ignored so callers can forward
    optional arguments untouched.

    Raises:
        TaskValidationError: If the merged values do not validate
    """
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if isinstance(options, model) and defaults is None and not overrides:
        return options

    values: Dict[str, Any] = {}
    if defaults is not None:
        values.update(defaults.model_dump())
    if isinstance(options, BaseModel):
        values.update(options.model_dump(exclude_unset=True))
    elif isinstance(options, Mapping):
        values.update(options)
    elif options is not None:
        raise TaskValidationError(
            f"{model.__name__} expects a mapping or {model.__name__}, got {type(options).__name__}"
        )
    values.update(overrides)

    try:
        return model(**values)
    except ValidationError as e:
        problems = [
            {"field": ".".join(str(p) for p in err["loc"]) or "options", "message": err["msg"]}
            for err in e.errors()
        ]
        summary = "; ".join(f"{p['field']}: {p['message']}" for p in problems)
        raise TaskValidationError(f"Invalid {model.__name__}: {summary}", data={"errors": problems}) from e


def _require_job_id(job_id: Any) -> str:
    if not isinstance(job_id, str) or not job_id.strip():
        raise TaskValidationError("Missing required parameter: job_id", data={"job_id": repr(job_id)})
    return job_id.strip()


class TaskOrchestrator:
    """Coordinates job submission, inspection and polling with caching and throttling.

    All collaborators are injected; instances share nothing implicitly, so
    tests and multi-tenant callers can build isolated orchestrators.
    """

    def __init__(
        self,
        client: RemoteTaskClient,
        cache: TTLCache,
        rate_limiter: RateLimiter,
        fetcher: Optional[ResultContentFetcher] = None,
        policy: Optional[TaskCachePolicy] = None,
        poll_defaults: Optional[PollOptions] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the orchestrator.

        Args:
            client: Remote task API client
            cache: Shared TTL cache for job records
            rate_limiter: Shared limiter with "create" and "inspect" budgets
            fetcher: Result content fetcher; created on first use when omitted
            policy: Cache lifetimes (defaults to 1h / 24h / 5m / 30s)
            poll_defaults: Defaults for poll_until_complete (30 attempts, 3s)
            sleep: Coroutine used between poll attempts
            clock: Wall-clock source for record timestamps
        """
        self.client = client
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.policy = policy or TaskCachePolicy()
        self.poll_defaults = poll_defaults or PollOptions()
        self._fetcher = fetcher
        self._sleep = sleep
        self._clock = clock
        self._in_flight: Dict[str, "asyncio.Future[JobRecord]"] = {}

    @property
    def fetcher(self) -> ResultContentFetcher:
        if self._fetcher is None:
            self._fetcher = ResultContentFetcher()
        return self._fetcher

    # ---------------------- create ----------------------
    async def create_task(
        self, options: Union[CreateTaskOptions, Mapping[str, Any], None] = None, **kwargs: Any
    ) -> JobRecord:
        """Submit a job, reusing a cached or in-flight submission with the same fingerprint.

        Args:
            options: CreateTaskOptions or an equivalent mapping
            **kwargs: Individual CreateTaskOptions fields, overriding ``options``

        Returns:
            Normalized job record

        Raises:
            TaskValidationError: If type or input is missing or invalid
            RemoteServiceError: If the remote call fails or is rejected
        """
        opts = resolve_options(CreateTaskOptions, options, kwargs)

        fingerprint = opts.fingerprint_key
        if fingerprint is None or opts.is_cancel:
            return await self._submit(opts)

        cached = self.cache.get(fingerprint_key(fingerprint))
        if isinstance(cached, JobRecord):
            logger.info(f"Reusing cached task {cached.job_id} for fingerprint {fingerprint}")
            return cached

        pending = self._in_flight.get(fingerprint)
        if pending is not None:
            logger.info(f"Joining in-flight submission for fingerprint {fingerprint}")
            return await asyncio.shield(pending)

        future = asyncio.ensure_future(self._submit(opts))
        self._in_flight[fingerprint] = future
        future.add_done_callback(lambda f, fp=fingerprint: self._finish_in_flight(fp, f))
        return await asyncio.shield(future)

    def _finish_in_flight(self, fingerprint: str, future: "asyncio.Future[JobRecord]") -> None:
        if self._in_flight.get(fingerprint) is future:
            del self._in_flight[fingerprint]
        # Mark the outcome as retrieved even if every waiter was cancelled
        if not future.cancelled():
            future.exception()

    async def _submit(self, opts: CreateTaskOptions) -> JobRecord:
        operation = opts.operation.value if opts.operation else None
        context = {"type": opts.type.value, "input": dict(opts.input), "operation": operation}

        await self.rate_limiter.acquire(CREATE)
        try:
            response = await self.client.submit_job(
                opts.type.value, dict(opts.input), dict(opts.parameters), operation
            )
        except TaskError:
            raise
        except Exception as e:
            logger.error(f"Failed to create {opts.type.value} task: {e}")
            raise RemoteServiceError(
                f"Failed to create task: {e}", original_error=e, data=context
            ) from e

        fallback_id = None
        if opts.is_cancel:
            fallback_id = opts.input.get("task_id") or opts.input.get("taskId")
        record = self._to_record(response, context, fingerprint=opts.fingerprint_key, job_id=fallback_id)

        if opts.is_cancel:
            # The stopped job's cached state is stale from here on
            self.invalidate(record.job_id)
            logger.info(f"Stop submitted for task {record.job_id} (status: {record.status.value})")
            return record

        ttl = opts.cache_ttl if opts.cache_ttl is not None else self.policy.task_ttl
        self.cache.set(job_key(record.job_id), record, ttl)
        if opts.fingerprint_key:
            self.cache.set(fingerprint_key(opts.fingerprint_key), record, ttl)

        logger.info(
            f"Created {opts.type.value} task {record.job_id} (status: {record.status.value})"
        )
        return record

    # ---------------------- inspect ----------------------
    async def get_task_info(
        self, job_id: str, options: Union[InspectOptions, Mapping[str, Any], None] = None, **kwargs: Any
    ) -> JobRecord:
        """Return a job's record, from cache when it is terminal or fresh.

        Args:
            job_id: Remote job id
            options: InspectOptions or an equivalent mapping
            **kwargs: Individual InspectOptions fields, overriding ``options``

        Returns:
            Job record, with content attached when requested and available

        Raises:
            TaskValidationError: If job_id is missing or options are invalid
            RemoteServiceError: If the remote call fails or is rejected
        """
        job_id = _require_job_id(job_id)
        opts = resolve_options(InspectOptions, options, kwargs)
        key = opts.cache_key or job_key(job_id)

        cached = self.cache.get(key)
        previous = cached if isinstance(cached, JobRecord) else None

        if previous is not None and not opts.force_fresh:
            if previous.is_terminal or previous.age_seconds(self._clock()) < self.policy.fresh_window:
                logger.info(f"Serving cached task {job_id} (status: {previous.status.value})")
                if opts.fetch_content and self._needs_content(previous):
                    previous = previous.evolve(content=await self.fetcher.fetch_all(previous.result_refs))
                    self.cache.set(key, previous, self._ttl(opts, previous.status))
                return previous

        await self.rate_limiter.acquire(INSPECT)
        try:
            response = await self.client.fetch_job_status(job_id)
        except TaskError:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch task {job_id}: {e}")
            raise RemoteServiceError(
                f"Failed to get task info: {e}", original_error=e, data={"job_id": job_id}
            ) from e

        record = self._to_record(response, {"job_id": job_id}, job_id=job_id)
        record = self._merge(previous, record)

        if opts.fetch_content and self._needs_content(record):
            record = record.evolve(content=await self.fetcher.fetch_all(record.result_refs))

        ttl = self._ttl(opts, record.status)
        self.cache.set(key, record, ttl)
        if record.fingerprint and self.cache.has(fingerprint_key(record.fingerprint)):
            self.cache.set(fingerprint_key(record.fingerprint), record, ttl)

        logger.debug(f"Refreshed task {job_id}: {record.status.value} (ttl={ttl}s)")
        return record

    def _ttl(self, opts: InspectOptions, status: TaskStatus) -> float:
        return opts.cache_ttl if opts.cache_ttl is not None else self.policy.ttl_for(status)

    @staticmethod
    def _needs_content(record: JobRecord) -> bool:
        return record.status is TaskStatus.COMPLETED and bool(record.result_refs) and record.content is None

    def _merge(self, previous: Optional[JobRecord], record: JobRecord) -> JobRecord:
        """Carry cached knowledge into a refreshed record without moving status backwards."""
        if previous is None or previous.job_id != record.job_id:
            return record

        changes: Dict[str, Any] = {}
        if record.fingerprint is None and previous.fingerprint:
            changes["fingerprint"] = previous.fingerprint
        if not previous.status.can_transition_to(record.status):
            logger.warning(
                f"Task {record.job_id} reported {record.status.value} after "
                f"{previous.status.value}; keeping {previous.status.value}"
            )
            changes.update(
                status=previous.status,
                result_refs=record.result_refs or previous.result_refs,
                error_message=record.error_message or previous.error_message,
            )
        if previous.content is not None and (changes.get("result_refs", record.result_refs) == previous.result_refs):
            changes["content"] = previous.content
        return record.evolve(**changes) if changes else record

    def _to_record(
        self,
        response: RemoteResponse,
        context: Dict[str, Any],
        fingerprint: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> JobRecord:
        if not response.is_success:
            logger.error(f"Remote API rejected request: [{response.code}] {response.message}")
            raise RemoteServiceError(
                f"Remote API returned error: {response.message or 'unknown error'}",
                response=response,
                data={**context, "code": response.code, "request_id": response.request_id},
            )
        try:
            return JobRecord.from_response(
                response, fingerprint=fingerprint, cached_at=self._clock(), job_id=job_id
            )
        except ValueError as e:
            raise RemoteServiceError(
                f"Malformed remote response: {e}", response=response, data=context
            ) from e

    # ---------------------- poll ----------------------
    async def poll_until_complete(
        self,
        job_id: str,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
        fetch_content: Optional[bool] = None,
        options: Union[PollOptions, Mapping[str, Any], None] = None,
    ) -> JobRecord:
        """Refresh a job until it completes, fails, or the attempt budget runs out.

        Each attempt forces a remote refresh. The loop sleeps ``interval``
        seconds between attempts, never after the last one. A remote error
        during an attempt is logged and consumes that attempt.

        Args:
            job_id: Remote job id
            max_attempts: Attempt budget (default 30)
            interval: Seconds between attempts (default 3.0)
            fetch_content: Attach result content on completion (default True)
            options: PollOptions or an equivalent mapping

        Returns:
            The COMPLETED job record

        Raises:
            TaskValidationError: If job_id or the poll settings are invalid
            TaskFailedError: If the job reaches FAILED
            PollTimeoutError: If no terminal state was seen within the budget
        """
        job_id = _require_job_id(job_id)
        opts = resolve_options(
            PollOptions,
            options,
            {"max_attempts": max_attempts, "interval": interval, "fetch_content": fetch_content},
            defaults=self.poll_defaults,
        )
        inspect_options = InspectOptions(force_fresh=True, fetch_content=opts.fetch_content)

        last_error: Optional[BaseException] = None
        for attempt in range(1, opts.max_attempts + 1):
            try:
                record = await self.get_task_info(job_id, inspect_options)
            except RemoteServiceError as e:
                last_error = e
                logger.warning(f"Poll attempt {attempt}/{opts.max_attempts} for task {job_id} failed: {e}")
            else:
                if record.status is TaskStatus.COMPLETED:
                    logger.info(f"Task {job_id} completed after {attempt} poll attempts")
                    return record
                if record.status is TaskStatus.FAILED:
                    logger.error(f"Task {job_id} failed: {record.error_message}")
                    raise TaskFailedError(job_id, record.error_message, record=record)
                logger.debug(
                    f"Task {job_id} still {record.status.value} (attempt {attempt}/{opts.max_attempts})"
                )

            if attempt < opts.max_attempts:
                await self._sleep(opts.interval)

        raise PollTimeoutError(job_id, opts.max_attempts, opts.max_attempts, last_error=last_error)

    # ---------------------- housekeeping ----------------------
    def invalidate(self, job_id: str) -> bool:
        """Drop the cached record of a job (and its fingerprint entry, if any)."""
        key = job_key(job_id)
        record = self.cache.get(key)
        removed = self.cache.delete(key)
        if isinstance(record, JobRecord) and record.fingerprint:
            self.cache.delete(fingerprint_key(record.fingerprint))
        return removed

    async def aclose(self) -> None:
        """Close the result fetcher (which closes only an HTTP client it created)."""
        if self._fetcher is not None:
            await self._fetcher.aclose()
