"""
Abstract interfaces for the job dispatch client.

These interfaces enable:
    - ResultReporter: Swappable sinks for accepted jobs and batch verdicts
      (build log, JSON file, host-specific collectors)

Design Philosophy:
    - The core never assumes a particular sink
    - Leveled log events flow through the standard logging module; reporters
      only receive the structured records
"""

from abc import ABC, abstractmethod

from dispatch.src.models import AcceptedJob, BatchResult


class ResultReporter(ABC):
    """
    Abstract interface for consumers of submission results.

    Contract: job_accepted() is called once per accepted job, in the order
    jobs were accepted; batch_completed() is called exactly once per run,
    including runs that were aborted.

    Implementations:
        - LoggingReporter: Writes accepted jobs and the verdict to the log
        - JsonFileReporter: Writes the full BatchResult to a JSON file
    """

    @abstractmethod
    def job_accepted(self, job: AcceptedJob) -> None:
        """
        Receive one accepted job.

        Args:
            job: The accepted job record
        """
        pass

    @abstractmethod
    def batch_completed(self, result: BatchResult) -> None:
        """
        Receive the final (or partial, if aborted) batch result.

        Args:
            result: BatchResult for the run
        """
        pass
