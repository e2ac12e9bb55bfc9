"""
Pytest configuration and shared fixtures for dispatch tests.

This module provides reusable fixtures; the fake HTTP session lives in
tests/fakes.py.
"""

import json
import random

import pytest

from tests.fakes import SleepRecorder

API_ENDPOINT = "https://queue.example.com/api/2017-04-14/jobs"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def api_endpoint() -> str:
    return API_ENDPOINT


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    """Backoff sleep that returns immediately and records delays."""
    return SleepRecorder()


@pytest.fixture
def seeded_rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def sample_jobs_json() -> str:
    """Three valid jobs with extra opaque fields."""
    return json.dumps([
        {"QueueId": "windows.10.amd64", "Source": "build/1", "Build": "20170101.1",
         "Properties": {"architecture": "x64"}},
        {"QueueId": "ubuntu.1604.amd64", "Source": "build/1", "Build": "20170101.1"},
        {"QueueId": "osx.1012.amd64", "Source": "build/1", "Build": "20170101.1"},
    ])


@pytest.fixture
def event_data_file(tmp_path, sample_jobs_json) -> str:
    """sample_jobs_json written to a temporary file."""
    path = tmp_path / "jobs.json"
    path.write_text(sample_jobs_json, encoding="utf-8")
    return str(path)
