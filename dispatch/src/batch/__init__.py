"""
Batch Job Submission Module

This module provides the batch parser and the JobSubmitter class for
posting job start messages to the queueing API.
"""

from .job_submitter import JobSubmitter, build_submission_url, parse_job_response
from .parser import BatchParseError, load_batch, parse_batch

__all__ = [
    "JobSubmitter",
    "build_submission_url",
    "parse_job_response",
    "BatchParseError",
    "load_batch",
    "parse_batch",
]
