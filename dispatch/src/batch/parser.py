"""
Batch parser - turn job event JSON into JobDescriptions.

Accepts either a JSON array of job objects or a single job object. The
array form is tried first; a single object is wrapped in a one-element
batch. Anything else is fatal for the whole run, before any network call.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Union

from dispatch.src.models import BatchShape, JobDescription, ParsedBatch

logger = logging.getLogger(__name__)


class BatchParseError(Exception):
    """Raised when the input batch cannot be read as job objects."""
    pass


def _as_job_list(document: Any) -> List[dict]:
    """Read a decoded document as a list of job objects, or raise TypeError."""
    if not isinstance(document, list):
        raise TypeError("top-level value is not an array")
    for position, item in enumerate(document):
        if not isinstance(item, dict):
            raise BatchParseError(
                f"Job at position {position} is a {type(item).__name__}, expected an object"
            )
    return document


def parse_batch(text: str) -> ParsedBatch:
    """
    Parse raw batch text into an ordered batch of jobs.

    Args:
        text: JSON text, either an array of job objects or one job object

    Returns:
        ParsedBatch with jobs in input order and the shape that was accepted

    Raises:
        BatchParseError: If the text is not JSON, or is neither an array of
                         objects nor a single object
    """
    try:
        document = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise BatchParseError(f"Job event data is not valid JSON: {e}") from e

    try:
        items = _as_job_list(document)
        shape = BatchShape.ARRAY
    except TypeError:
        if not isinstance(document, dict):
            raise BatchParseError(
                f"Job event data must be an object or an array of objects, "
                f"got {type(document).__name__}"
            )
        items = [document]
        shape = BatchShape.SINGLE

    jobs = [JobDescription(payload=item, index=i) for i, item in enumerate(items)]
    logger.debug(f"Parsed {len(jobs)} job(s) from {shape.value} input")
    return ParsedBatch(jobs=jobs, shape=shape)


def load_batch(path: Union[str, Path]) -> ParsedBatch:
    """
    Read and parse a job event data file.

    Args:
        path: Path to a UTF-8 JSON file (a leading BOM is accepted)

    Returns:
        ParsedBatch

    Raises:
        BatchParseError: If the file cannot be read or parsed
    """
    logger.debug(f"Using job event json from {path}")
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise BatchParseError(f"Cannot read job event data from {path}: {e}") from e
    return parse_batch(text)
