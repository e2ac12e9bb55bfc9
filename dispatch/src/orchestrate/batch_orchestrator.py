"""
Batch Orchestrator - Drive job submission across a parsed batch.

This module provides the high-level orchestration for one run:
1. Parse the job event data (fatal on malformed input, before any HTTP call)
2. Validate each job's QueueId (invalid jobs are never submitted)
3. Submit jobs one at a time through a shared HTTP session
4. Collect accepted jobs and per-job failures
5. Return a BatchResult whose verdict is accepted == input

IMPORTANT: Jobs are submitted sequentially by default. The queueing endpoint
is shared and rate-sensitive, and the jittered backoff assumes no other
submitter is retrying against it at the same time. max_concurrency > 1 is
available but keeps per-job retry behaviour unchanged.

Usage:
    orchestrator = BatchOrchestrator(
        api_endpoint="https://queue.example.com/api/jobs",
        access_token="secret",
        reporters=[LoggingReporter()],
    )
    result = await orchestrator.run_file("jobs.json")

    if not result.succeeded:
        ...
"""

import asyncio
import logging
import random
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Union

import aiohttp

from dispatch.src.batch.job_submitter import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_JITTER,
    DEFAULT_REQUEST_TIMEOUT,
    JobSubmitter,
    is_absolute_http_url,
)
from dispatch.src.batch.parser import load_batch, parse_batch
from dispatch.src.cancellation import OrchestratorError, RunAbortedError, RunCancellation
from dispatch.src.config import DispatchConfig
from dispatch.src.interfaces import ResultReporter
from dispatch.src.models import (
    QUEUE_ID_FIELD,
    AcceptedJob,
    BatchResult,
    FailureKind,
    JobDescription,
    JobFailure,
    SubmissionState,
)

logger = logging.getLogger(__name__)

__all__ = [
    "BatchOrchestrator",
    "OrchestratorError",
    "RunAbortedError",
    "submit_batch",
]


class BatchOrchestrator:
    """
    Coordinate validation, submission and reporting for a batch of jobs.

    This is the main entry point for a dispatch run.
    """

    def __init__(
        self,
        api_endpoint: str,
        access_token: Optional[str] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_jitter: int = DEFAULT_MAX_JITTER,
        max_concurrency: int = 1,
        reporters: Optional[Sequence[ResultReporter]] = None,
        session: Optional[aiohttp.ClientSession] = None,
        rng: Optional[random.Random] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        cancellation: Optional[RunCancellation] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            api_endpoint: Job API endpoint
            access_token: Optional API access token
            max_attempts: HTTP attempts per job
            request_timeout: Per-attempt timeout in seconds
            max_jitter: Upper bound of the backoff multiplier
            max_concurrency: Jobs submitted at once (default: 1, sequential)
            reporters: Result sinks notified of accepted jobs and the verdict
            session: Optional HTTP session (for testing); created per run otherwise
            rng: Optional random source for backoff jitter (for testing)
            sleep: Optional backoff sleep coroutine (for testing)
            cancellation: Run-scoped cancellation signal
        """
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        if not is_absolute_http_url(api_endpoint):
            raise ValueError(f"api_endpoint must be an absolute http(s) URL, got '{api_endpoint}'")

        self.api_endpoint = api_endpoint
        self.max_attempts = max_attempts
        self.request_timeout = request_timeout
        self.max_jitter = max_jitter
        self.max_concurrency = max_concurrency
        self.reporters: List[ResultReporter] = list(reporters or [])
        self.cancellation = cancellation or RunCancellation()

        self._access_token = access_token
        self._session = session
        self._rng = rng
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: DispatchConfig, **kwargs) -> "BatchOrchestrator":
        """Create an orchestrator from a DispatchConfig; kwargs are passed through."""
        return cls(
            api_endpoint=config.api_endpoint,
            access_token=config.access_token,
            max_attempts=config.max_attempts,
            request_timeout=config.request_timeout,
            max_jitter=config.max_jitter,
            max_concurrency=config.max_concurrency,
            **kwargs,
        )

    async def run_file(self, path: Union[str, Path]) -> BatchResult:
        """
        Parse a job event file and submit every job in it.

        Raises:
            BatchParseError: If the file is not a job object or array of job objects
            RunAbortedError: If the run is cancelled
        """
        batch = load_batch(path)
        return await self.run(batch.jobs)

    async def run_text(self, text: str) -> BatchResult:
        """Parse job event JSON text and submit every job in it."""
        batch = parse_batch(text)
        return await self.run(batch.jobs)

    async def run(self, jobs: Sequence[JobDescription]) -> BatchResult:
        """
        Submit a batch of jobs.

        Args:
            jobs: Jobs in input order

        Returns:
            BatchResult with accepted jobs in input order

        Raises:
            RunAbortedError: If the run is cancelled. The partial BatchResult
                             is available as the exception's `result`.
        """
        logger.info(f"Posting job to {self.api_endpoint}")
        result = BatchResult(input_count=len(jobs))

        try:
            if self._session is not None:
                await self._run_with_session(self._session, jobs, result)
            else:
                timeout = aiohttp.ClientTimeout(total=self.request_timeout)
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    await self._run_with_session(session, jobs, result)
        except RunAbortedError as e:
            result.aborted = True
            e.result = result
            logger.error(
                f"Run aborted after {len(result.accepted)}/{result.input_count} jobs were accepted"
            )
            self._notify_completed(result)
            raise

        if result.succeeded:
            logger.info(f"Submitted {len(result.accepted)}/{result.input_count} jobs")
        else:
            logger.error(
                f"Submitted {len(result.accepted)}/{result.input_count} jobs, "
                f"{len(result.failures)} failed"
            )
        self._notify_completed(result)
        return result

    async def _run_with_session(
        self,
        session: aiohttp.ClientSession,
        jobs: Sequence[JobDescription],
        result: BatchResult,
    ) -> None:
        submitter = JobSubmitter(
            session=session,
            api_endpoint=self.api_endpoint,
            access_token=self._access_token,
            max_attempts=self.max_attempts,
            max_jitter=self.max_jitter,
            rng=self._rng,
            sleep=self._sleep,
            cancellation=self.cancellation,
        )

        accepted: Dict[int, AcceptedJob] = {}
        failures: Dict[int, JobFailure] = {}

        try:
            if self.max_concurrency == 1:
                for position, job in enumerate(jobs):
                    await self._process(submitter, position, job, accepted, failures)
            else:
                await self._process_concurrently(submitter, jobs, accepted, failures)
        finally:
            result.accepted = [accepted[i] for i in sorted(accepted)]
            result.failures = [failures[i] for i in sorted(failures)]

    async def _process_concurrently(
        self,
        submitter: JobSubmitter,
        jobs: Sequence[JobDescription],
        accepted: Dict[int, AcceptedJob],
        failures: Dict[int, JobFailure],
    ) -> None:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(position: int, job: JobDescription) -> None:
            async with semaphore:
                await self._process(submitter, position, job, accepted, failures)

        outcomes = await asyncio.gather(
            *(bounded(i, job) for i, job in enumerate(jobs)),
            return_exceptions=True,
        )
        errors = [o for o in outcomes if isinstance(o, BaseException)]
        for error in errors:
            if isinstance(error, RunAbortedError):
                raise error
        if errors:
            raise errors[0]

    async def _process(
        self,
        submitter: JobSubmitter,
        position: int,
        job: JobDescription,
        accepted: Dict[int, AcceptedJob],
        failures: Dict[int, JobFailure],
    ) -> None:
        self.cancellation.raise_if_cancelled()

        queue_id = job.queue_id
        if not queue_id:
            message = f"Job start messages must have a value for '{QUEUE_ID_FIELD}'"
            logger.error(f"{message} (job {job.index})")
            failures[position] = JobFailure(
                index=job.index,
                queue_id=None,
                kind=FailureKind.VALIDATION,
                message=message,
            )
            return

        outcome = await submitter.submit(job)
        if outcome.state is SubmissionState.ACCEPTED:
            accepted[position] = outcome.accepted
            for reporter in self.reporters:
                reporter.job_accepted(outcome.accepted)
            return

        last = outcome.attempts[-1]
        failures[position] = JobFailure(
            index=job.index,
            queue_id=queue_id,
            kind=FailureKind.EXHAUSTED,
            message=(
                f"No job started after {outcome.attempt_count} attempts "
                f"(last status: {last.status_code if last.status_code is not None else 'none'} "
                f"{last.reason})"
            ),
        )

    def _notify_completed(self, result: BatchResult) -> None:
        for reporter in self.reporters:
            reporter.batch_completed(result)


def submit_batch(
    config: DispatchConfig,
    reporters: Optional[Sequence[ResultReporter]] = None,
    **kwargs,
) -> BatchResult:
    """
    Synchronous wrapper: submit the batch at config.event_data_path.

    Args:
        config: Dispatch settings
        reporters: Result sinks
        **kwargs: Passed to BatchOrchestrator (session, rng, sleep, cancellation)

    Returns:
        BatchResult
    """
    orchestrator = BatchOrchestrator.from_config(config, reporters=reporters, **kwargs)
    return asyncio.run(orchestrator.run_file(config.event_data_path))
