"""
Job Dispatch - reliable batch job submission

This package posts batches of job start messages to a remote queueing API,
retrying transient failures and reporting which jobs were accepted.

Core modules:
    - models: Data classes (JobDescription, AcceptedJob, BatchResult, etc.)
    - interfaces: Abstract interfaces (ResultReporter)
    - batch: Batch parsing and the per-job submitter
    - orchestrate: Batch-level orchestration and verdict
    - reporting: Result reporter implementations
"""

from dispatch.src.models import (
    AcceptedJob,
    BatchResult,
    JobDescription,
    JobFailure,
    SubmissionAttempt,
)
from dispatch.src.interfaces import ResultReporter

__all__ = [
    "AcceptedJob",
    "BatchResult",
    "JobDescription",
    "JobFailure",
    "SubmissionAttempt",
    "ResultReporter",
]
