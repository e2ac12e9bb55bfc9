"""
Data models for the job dispatch client.

These dataclasses define the contract between the parser, the submitter,
the orchestrator and the reporters.

Design Philosophy:
    - Job payloads are opaque: only QueueId is read, everything else is
      forwarded verbatim to the queueing API
    - Parse outcomes are tagged variants, not collapsed into a strict schema
    - BatchResult.succeeded is derived from counts, never stored
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

QUEUE_ID_FIELD = "QueueId"
JOB_START_IDENTIFIER_FIELD = "JobStartIdentifier"
JOB_NAME_FIELD = "Name"


class BatchShape(str, Enum):
    """Which top-level JSON form the batch was read from."""

    ARRAY = "array"
    SINGLE = "single"


class ResponseParseStatus(str, Enum):
    """How the body of a 2xx response was interpreted."""

    OK = "ok"
    MISSING_NAME = "missing_name"
    MALFORMED = "malformed"


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


class SubmissionState(str, Enum):
    ACCEPTED = "accepted"
    FAILED = "failed"


class FailureKind(str, Enum):
    VALIDATION = "validation"
    EXHAUSTED = "exhausted"


@dataclass
class JobDescription:
    """
    One job start message to be posted to the queueing API.

    Attributes:
        payload: The job object exactly as read from the input batch.
                 Mutated once, when the job start identifier is attached.
        index: Zero-based position in the input batch
        job_start_identifier: Idempotency token, set on first attach and
                              reused for every retry of this job
    """

    payload: Dict[str, Any]
    index: int = 0
    job_start_identifier: Optional[str] = None

    @property
    def queue_id(self) -> Optional[str]:
        value = self.payload.get(QUEUE_ID_FIELD)
        return value if isinstance(value, str) else None

    def attach_job_start_identifier(self) -> str:
        """
        Attach a job start identifier to the payload if not already attached.

        Any JobStartIdentifier present in the input is overwritten the first
        time; later calls return the identifier already attached.

        Returns:
            32-character hex identifier
        """
        if self.job_start_identifier is None:
            self.job_start_identifier = uuid.uuid4().hex
            self.payload[JOB_START_IDENTIFIER_FIELD] = self.job_start_identifier
        return self.job_start_identifier


@dataclass
class ParsedBatch:
    """Jobs read from the input, plus the form they were read from."""

    jobs: List[JobDescription]
    shape: BatchShape

    def __len__(self) -> int:
        return len(self.jobs)


@dataclass
class SubmissionAttempt:
    """
    A single HTTP attempt for one job. Not persisted.

    Attributes:
        attempt_number: 1-based attempt counter for the job
        url: Request URL (may carry the access token, do not log)
        payload: Serialized request body
        outcome: SUCCESS, RETRYABLE or FATAL
        status_code: HTTP status if a response was received
        reason: Status reason phrase or exception description
    """

    attempt_number: int
    url: str
    payload: str
    outcome: AttemptOutcome
    status_code: Optional[int] = None
    reason: str = ""


@dataclass(frozen=True)
class AcceptedJob:
    """
    A job the queueing API confirmed receipt of.

    Attributes:
        job_id: Job identifier from the response "Name" field (may be empty)
        correlation_id: Same value as job_id
        queue_id: Queue the job was submitted to
        queued_at: UTC time the response was received
        job_start_identifier: Idempotency token sent with the job
    """

    job_id: str
    correlation_id: str
    queue_id: str
    queued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    job_start_identifier: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "JobId": self.job_id,
            "CorrelationId": self.correlation_id,
            "QueueId": self.queue_id,
            "QueueTimeUtc": self.queued_at.isoformat(),
            "JobStartIdentifier": self.job_start_identifier,
        }


@dataclass
class SubmissionResult:
    """Terminal outcome of submitting one job, with its attempt history."""

    state: SubmissionState
    accepted: Optional[AcceptedJob] = None
    attempts: List[SubmissionAttempt] = field(default_factory=list)
    response_status: Optional[ResponseParseStatus] = None

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


@dataclass
class JobFailure:
    """Why a job is absent from the accepted output."""

    index: int
    queue_id: Optional[str]
    kind: FailureKind
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "QueueId": self.queue_id,
            "kind": self.kind.value,
            "message": self.message,
        }


@dataclass
class BatchResult:
    """
    Aggregate outcome of a run.

    Attributes:
        input_count: Number of jobs in the parsed batch
        accepted: Accepted jobs, in input order
        failures: Jobs that were rejected or exhausted their retries
        aborted: True if the run was cancelled before finishing
    """

    input_count: int
    accepted: List[AcceptedJob] = field(default_factory=list)
    failures: List[JobFailure] = field(default_factory=list)
    aborted: bool = False

    @property
    def succeeded(self) -> bool:
        """True only if every input job was accepted."""
        return len(self.accepted) == self.input_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "aborted": self.aborted,
            "input_count": self.input_count,
            "accepted": [job.to_dict() for job in self.accepted],
            "failures": [failure.to_dict() for failure in self.failures],
        }
