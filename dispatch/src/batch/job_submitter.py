"""
Job Submitter

Posts one job start message to the queueing API, retrying transient
failures with jittered linear backoff.

Usage:
    from dispatch.src.batch import JobSubmitter

    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=30)) as session:
        submitter = JobSubmitter(
            session=session,
            api_endpoint="https://queue.example.com/api/jobs",
            access_token="secret",
        )
        result = await submitter.submit(job)

Retry policy:
    - Non-2xx responses, connection errors and per-attempt timeouts are retried
    - Up to max_attempts HTTP attempts per job (default: 15)
    - Before attempt k the submitter sleeps (k - 1) * randint(1, max_jitter) seconds
    - A 2xx response always ends the loop, even if the body has no job name
    - Run cancellation (RunAbortedError) and task cancellation are never retried
    - An api_endpoint that is not an absolute http(s) URL is rejected up front

Every attempt for a job carries the same JobStartIdentifier, so the API can
recognise a retry of a job start it already processed after an ambiguous
timeout.
"""

import asyncio
import json
import logging
import random
from typing import Awaitable, Callable, Optional, Tuple
from urllib.parse import quote, urlsplit

import aiohttp

from dispatch.src.cancellation import RunCancellation
from dispatch.src.models import (
    JOB_NAME_FIELD,
    AcceptedJob,
    AttemptOutcome,
    JobDescription,
    ResponseParseStatus,
    SubmissionAttempt,
    SubmissionResult,
    SubmissionState,
)

logger = logging.getLogger(__name__)

# Default configuration values
DEFAULT_MAX_ATTEMPTS = 15
DEFAULT_REQUEST_TIMEOUT = 30  # 15 attempts @ 30 seconds = ~7:30 without backoff
DEFAULT_MAX_JITTER = 6

JSON_HEADERS = {"Content-Type": "application/json"}


def is_absolute_http_url(url: str) -> bool:
    """True if `url` has an http(s) scheme and a host."""
    parts = urlsplit(url or "")
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def build_submission_url(api_endpoint: str, access_token: Optional[str] = None) -> str:
    """
    Append the access token to the endpoint as a query parameter.

    Args:
        api_endpoint: Job API endpoint, may already contain a query string
        access_token: Optional token, percent-encoded into the URL

    Returns:
        URL to POST to
    """
    if not access_token:
        return api_endpoint
    join_character = "&" if "?" in api_endpoint else "?"
    return f"{api_endpoint}{join_character}access_token={quote(access_token, safe='')}"


def parse_job_response(body: str) -> Tuple[ResponseParseStatus, str]:
    """
    Extract the job name from a successful response body.

    Args:
        body: Raw response text

    Returns:
        Tuple of (parse status, job name). Job name is "" unless status is OK.
    """
    try:
        document = json.loads(body)
    except ValueError:
        return ResponseParseStatus.MALFORMED, ""

    if not isinstance(document, dict):
        return ResponseParseStatus.MALFORMED, ""

    name = document.get(JOB_NAME_FIELD)
    if isinstance(name, (int, float)) and not isinstance(name, bool):
        name = str(name)
    if not isinstance(name, str) or not name:
        return ResponseParseStatus.MISSING_NAME, ""
    return ResponseParseStatus.OK, name


class JobSubmitter:
    """
    Submit single jobs to the queueing API with retry.

    The submitter holds no per-job state: the attempt counter and the
    attempt history live inside each submit() call, so one instance can be
    shared by concurrent submissions.

    Attributes:
        api_endpoint: Endpoint without the access token (safe to log)
        max_attempts: HTTP attempts per job before giving up
        max_jitter: Upper bound of the random backoff multiplier
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_endpoint: str,
        access_token: Optional[str] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_jitter: int = DEFAULT_MAX_JITTER,
        rng: Optional[random.Random] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        cancellation: Optional[RunCancellation] = None,
    ):
        """
        Initialize the submitter.

        Args:
            session: Shared HTTP session; its timeout is the per-attempt deadline
            api_endpoint: Job API endpoint
            access_token: Optional API access token
            max_attempts: HTTP attempts per job (default: 15)
            max_jitter: Backoff multiplier is drawn from 1..max_jitter (default: 6)
            rng: Random source for jitter (for testing)
            sleep: Coroutine used to wait between attempts (for testing)
            cancellation: Run-scoped cancellation signal

        Raises:
            ValueError: If max_attempts or max_jitter is below 1, or api_endpoint
                        is not an absolute http(s) URL
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if max_jitter < 1:
            raise ValueError(f"max_jitter must be at least 1, got {max_jitter}")
        if not is_absolute_http_url(api_endpoint):
            raise ValueError(f"api_endpoint must be an absolute http(s) URL, got '{api_endpoint}'")

        self.api_endpoint = api_endpoint
        self.max_attempts = max_attempts
        self.max_jitter = max_jitter

        self._session = session
        self._url = build_submission_url(api_endpoint, access_token)
        self._rng = rng or random.Random()
        self._sleep = sleep or asyncio.sleep
        self._cancellation = cancellation

    def backoff_delay(self, failed_attempts: int) -> int:
        """
        Seconds to wait after `failed_attempts` consecutive failures.

        Linear upper bound with per-attempt jitter so that several clients
        retrying against the same endpoint do not synchronise.
        """
        return failed_attempts * self._rng.randint(1, self.max_jitter)

    async def submit(self, job: JobDescription) -> SubmissionResult:
        """
        Submit one job, retrying until accepted or out of attempts.

        Args:
            job: Job to submit; its JobStartIdentifier is attached here

        Returns:
            SubmissionResult in state ACCEPTED (with an AcceptedJob) or FAILED

        Raises:
            RunAbortedError: If the run is cancelled
        """
        queue_id = job.queue_id or ""
        identifier = job.attach_job_start_identifier()
        logger.debug(f"Sending job start with identifier '{identifier}'")

        body = json.dumps(job.payload)
        result = SubmissionResult(state=SubmissionState.FAILED)
        remaining = self.max_attempts

        while True:
            attempt, parse_status, job_id = await self._attempt(
                body, len(result.attempts) + 1, queue_id, identifier
            )
            result.attempts.append(attempt)

            if attempt.outcome is AttemptOutcome.SUCCESS:
                accepted = AcceptedJob(
                    job_id=job_id,
                    correlation_id=job_id,
                    queue_id=queue_id,
                    job_start_identifier=identifier,
                )
                logger.info(f"Started job: CorrelationId = {job_id}")
                result.state = SubmissionState.ACCEPTED
                result.accepted = accepted
                result.response_status = parse_status
                return result

            remaining -= 1
            if remaining <= 0:
                attempt.outcome = AttemptOutcome.FATAL
                status = attempt.status_code if attempt.status_code is not None else "none"
                logger.error(
                    f"Unable to publish to '{self.api_endpoint}' after "
                    f"{result.attempt_count} attempts. Last status: {status} {attempt.reason}"
                )
                return result

            logger.warning(
                f"Failed to publish to '{self.api_endpoint}', {remaining} attempts remaining"
            )
            delay = self.backoff_delay(self.max_attempts - remaining)
            await self._guarded(self._sleep(delay))

    async def _guarded(self, awaitable):
        if self._cancellation is None:
            return await awaitable
        return await self._cancellation.guard(awaitable)

    async def _send(self, body: str) -> Tuple[int, str, str]:
        async with self._session.post(
            self._url, data=body.encode("utf-8"), headers=JSON_HEADERS
        ) as response:
            raw = await response.read()
            return response.status, response.reason or "", raw.decode("utf-8", errors="replace")

    async def _attempt(
        self, body: str, attempt_number: int, queue_id: str, identifier: str
    ) -> Tuple[SubmissionAttempt, Optional[ResponseParseStatus], str]:
        """
        Make one HTTP attempt and classify it.

        Returns:
            Tuple of (attempt record, response parse status, job id).
            Parse status is None unless the response was 2xx.
        """
        attempt = SubmissionAttempt(
            attempt_number=attempt_number,
            url=self._url,
            payload=body,
            outcome=AttemptOutcome.RETRYABLE,
        )

        try:
            status, reason, text = await self._guarded(self._send(body))
        except asyncio.TimeoutError:
            # Per-attempt deadline; safe to retry because of the identifier
            logger.warning(
                f"HTTP timeout while attempting to POST new job to '{queue_id}', "
                f"will retry. Job Start Identifier: {identifier}"
            )
            attempt.reason = "timeout"
            return attempt, None, ""
        except aiohttp.InvalidURL:
            # Not transient
            raise
        except aiohttp.ClientError as e:
            logger.warning(
                f"Exception thrown attempting to submit job to '{self.api_endpoint}': "
                f"{type(e).__name__}: {e}"
            )
            attempt.reason = f"{type(e).__name__}: {e}"
            return attempt, None, ""

        attempt.status_code = status
        attempt.reason = reason

        if not 200 <= status < 300:
            logger.warning(f"Job API response: status {status} {reason} {text}")
            return attempt, None, ""

        attempt.outcome = AttemptOutcome.SUCCESS
        parse_status, job_id = parse_job_response(text)
        if parse_status is ResponseParseStatus.MALFORMED:
            logger.warning(
                f"Hit exception attempting to parse JSON response. Raw response string:\n{text}"
            )
        if parse_status is not ResponseParseStatus.OK:
            logger.error(f"Publish to '{self.api_endpoint}' did not return a job ID")
        return attempt, parse_status, job_id
