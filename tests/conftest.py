"""Shared pytest fixtures for the afac_assistant test suite.

These fixtures provide:
* An in-memory record store seeded with site content, enrollments and progress
* A recorded requests.Session for the Supabase store
* A controllable clock for cache expiry tests
* Sample user identities (enrolled learner, brand-new user)
* A pre-wired ResponseEngine with a seeded random source
* A factory for ConversationRecord history rows
"""

from __future__ import annotations

import json
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
import requests

from afac_assistant.engine import ResponseEngine
from afac_assistant.models import ConversationRecord, UserIdentity
from afac_assistant.record_store import InMemoryRecordStore


class FakeClock:
    """Monotonic-style clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Sample rows
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_courses() -> List[Dict[str, Any]]:
    return [
        {
            "id": 1,
            "title": "Smart Farming Basics",
            "description": "Foundations of data-driven farming.",
            "category": "Agriculture",
            "difficulty_level": "Beginner",
        },
        {
            "id": 2,
            "title": "Precision Irrigation with IoT",
            "description": "Sensors, valves and scheduling.",
            "category": "Technology",
            "difficulty_level": "Advanced",
        },
        {
            "id": 3,
            "title": "Organic Soil Health",
            "description": "Compost, cover crops and testing.",
            "category": "Sustainability",
            "difficulty_level": "Intermediate",
        },
    ]


@pytest.fixture
def sample_tables(sample_courses) -> Dict[str, List[Dict[str, Any]]]:
    return {
        "courses": sample_courses,
        "success_stories": [
            {"title": "Doubled Maize Yield", "description": "after adopting drip irrigation"},
        ],
        "testimonials": [
            {"name": "Grace Okafor", "content": "The IoT course paid for itself in one season.", "rating": 5},
        ],
        "course_enrollments": [
            {"user_id": "user-1", "course_id": 1, "progress": 40,
             "courses": {"title": "Smart Farming Basics", "category": "Agriculture"}},
            {"user_id": "user-1", "course_id": 2, "progress": 75,
             "courses": {"title": "Precision Irrigation with IoT", "category": "Technology"}},
        ],
        "lesson_progress": [
            {"user_id": "user-1", "course_id": 1, "completed": True, "watched_percentage": 100},
            {"user_id": "user-1", "course_id": 1, "completed": True, "watched_percentage": 100},
            {"user_id": "user-1", "course_id": 2, "completed": False, "watched_percentage": 35},
        ],
    }


@pytest.fixture
def store(sample_tables) -> InMemoryRecordStore:
    """In-memory store seeded with site content and one enrolled learner."""
    return InMemoryRecordStore(tables=sample_tables)


@pytest.fixture
def empty_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


def json_response(status=200, payload=None, headers=None, url="https://demo.supabase.co/rest/v1/x"):
    """Real requests.Response carrying a JSON body."""
    response = requests.Response()
    response.status_code = status
    response._content = b"" if payload is None else json.dumps(payload).encode("utf-8")
    response.headers.update(headers or {})
    response.url = url
    return response


@pytest.fixture
def http_response():
    return json_response


@pytest.fixture
def recorded_session(monkeypatch):
    """requests.Session whose `request` records calls and replays queued responses."""
    session = requests.Session()
    session.calls = []
    session.queued = []

    def _fake_request(method, url, **kwargs):
        session.calls.append({"method": method, "url": url, **kwargs})
        outcome = session.queued.pop(0) if session.queued else json_response(payload=[])
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(session, "request", _fake_request)
    return session


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@pytest.fixture
def learner() -> UserIdentity:
    """Enrolled user with two courses and three lesson-progress rows."""
    return UserIdentity(id="user-1", email="ada@example.com", full_name="Ada Farmer")


@pytest.fixture
def new_user() -> UserIdentity:
    """Authenticated user with no enrollments."""
    return UserIdentity(id="user-2", email="new@example.com", full_name="Sam Newton")


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def engine(store, rng):
    """ResponseEngine over the seeded store; background writes drained at teardown."""
    engine = ResponseEngine(store, rng=rng)
    yield engine
    engine.close()


@pytest.fixture
def make_conversation():
    """Factory for history rows; `age_minutes` pushes created_at into the past."""
    base = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)

    def _factory(
        message: str,
        response: str,
        source: Optional[str] = "default",
        age_minutes: int = 0,
        user_id: str = "user-1",
    ) -> ConversationRecord:
        context = {"source": source} if source is not None else {}
        return ConversationRecord(
            user_message=message,
            bot_response=response,
            user_id=user_id,
            context=context,
            created_at=(base - timedelta(minutes=age_minutes)).isoformat(),
        )

    return _factory
