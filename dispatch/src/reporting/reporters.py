"""
Result reporters for dispatch runs.

- LoggingReporter: accepted jobs and the verdict as log lines
- JsonFileReporter: the BatchResult as a JSON document for the host
- LogEventCollector: logging handler that keeps leveled events as data
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dispatch.src.interfaces import ResultReporter
from dispatch.src.models import AcceptedJob, BatchResult

logger = logging.getLogger(__name__)


class LoggingReporter(ResultReporter):
    """Write accepted jobs and the final verdict to the log."""

    def __init__(self, target: Optional[logging.Logger] = None):
        self._logger = target or logger

    def job_accepted(self, job: AcceptedJob) -> None:
        self._logger.info(
            f"Accepted job {job.job_id or '<no id>'} on queue {job.queue_id} "
            f"at {job.queued_at.isoformat()}"
        )

    def batch_completed(self, result: BatchResult) -> None:
        if result.aborted:
            self._logger.error(
                f"Run aborted: {len(result.accepted)}/{result.input_count} jobs accepted before abort"
            )
        elif result.succeeded:
            self._logger.info(f"All {result.input_count} jobs accepted")
        else:
            self._logger.error(
                f"Only {len(result.accepted)}/{result.input_count} jobs accepted"
            )
        for failure in result.failures:
            self._logger.error(
                f"Job {failure.index} ({failure.queue_id or 'no queue'}): "
                f"{failure.kind.value}: {failure.message}"
            )


class LogEventCollector(logging.Handler):
    """
    Logging handler that records events in emission order.

    Usage:
        collector = LogEventCollector()
        logging.getLogger("dispatch").addHandler(collector)
        ...
        collector.events  # [{"level": "WARNING", "logger": ..., "message": ...}, ...]
    """

    def __init__(self, level: int = logging.INFO):
        super().__init__(level=level)
        self.events: List[Dict[str, str]] = []

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
        except Exception:
            self.handleError(record)
            return
        self.events.append({
            "level": record.levelname,
            "logger": record.name,
            "message": message,
        })


class JsonFileReporter(ResultReporter):
    """
    Write the batch result to a JSON file when the run completes.

    Output format:
        {
            "succeeded": true,
            "aborted": false,
            "input_count": 2,
            "accepted": [{"JobId": ..., "CorrelationId": ..., "QueueId": ...,
                          "QueueTimeUtc": ..., "JobStartIdentifier": ...}],
            "failures": [{"index": ..., "QueueId": ..., "kind": ..., "message": ...}],
            "events": [...]   # only with an event collector
        }
    """

    def __init__(
        self,
        output_path: Union[str, Path],
        event_collector: Optional[LogEventCollector] = None,
    ):
        self.output_path = Path(output_path)
        self._event_collector = event_collector

    def job_accepted(self, job: AcceptedJob) -> None:
        pass

    def batch_completed(self, result: BatchResult) -> None:
        document: Dict[str, Any] = result.to_dict()
        if self._event_collector is not None:
            document["events"] = list(self._event_collector.events)

        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.output_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
        logger.info(f"Wrote {len(result.accepted)} accepted jobs to {self.output_path}")
