"""
Fake HTTP layer for dispatch tests.

Mimics the parts of aiohttp.ClientSession the submitter uses:
session.post(...) returning an async context manager whose response
exposes status, reason and read().
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

HANG = "hang"


class FakeResponse:
    """Canned HTTP response."""

    def __init__(self, status: int = 200, body: str = "", reason: Optional[str] = None):
        self.status = status
        self.reason = reason if reason is not None else ("OK" if status < 300 else "Error")
        self._body = body

    async def read(self) -> bytes:
        return self._body.encode("utf-8")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _RaisingRequest:
    def __init__(self, error: BaseException):
        self._error = error

    async def __aenter__(self):
        raise self._error

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _HangingRequest:
    async def __aenter__(self):
        await asyncio.Event().wait()

    async def __aexit__(self, exc_type, exc, tb):
        return False


@dataclass
class RecordedRequest:
    url: str
    body: Dict[str, Any]
    headers: Dict[str, str]


class FakeSession:
    """
    Stand-in for aiohttp.ClientSession.

    Each post() consumes the next scripted outcome:
        - FakeResponse: returned as the response
        - exception instance: raised when the request is entered
        - HANG: never completes (until cancelled)
    """

    def __init__(self, outcomes: Optional[List[Any]] = None):
        self.outcomes = list(outcomes or [])
        self.requests: List[RecordedRequest] = []

    def post(self, url, data=None, headers=None):
        raw = data.decode("utf-8") if isinstance(data, bytes) else data
        self.requests.append(RecordedRequest(url=url, body=json.loads(raw), headers=dict(headers or {})))

        if not self.outcomes:
            raise AssertionError(f"Unexpected request #{len(self.requests)} to {url}")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            return _RaisingRequest(outcome)
        if outcome == HANG:
            return _HangingRequest()
        return outcome

    @property
    def identifiers(self) -> List[str]:
        return [r.body.get("JobStartIdentifier") for r in self.requests]


class QueueScriptedSession(FakeSession):
    """
    FakeSession whose outcomes are scripted per QueueId.

    Concurrent jobs interleave their requests, so a single ordered script
    cannot say which job gets which response.
    """

    def __init__(self, scripts: Dict[str, List[Any]]):
        super().__init__()
        self.scripts = {queue_id: list(outcomes) for queue_id, outcomes in scripts.items()}

    def post(self, url, data=None, headers=None):
        queue_id = json.loads(data.decode("utf-8"))["QueueId"]
        self.outcomes = self.scripts[queue_id]
        return super().post(url, data=data, headers=headers)

    def identifiers_for(self, queue_id: str) -> List[str]:
        return [r.body["JobStartIdentifier"] for r in self.requests if r.body["QueueId"] == queue_id]


def accepted(name: str) -> FakeResponse:
    """200 response carrying a job name."""
    return FakeResponse(200, json.dumps({"Name": name}))


def failed(status: int = 503, body: str = "Service Unavailable") -> FakeResponse:
    return FakeResponse(status, body)


class SleepRecorder:
    """Backoff sleep that records the delay and returns immediately."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


