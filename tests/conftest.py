"""
Test fixtures for the academic planner.

Provides a file-based SQLite database per test, a fixed clock, a seeded
user/semester/course and a recording mail dispatcher.
"""
from datetime import date, datetime

import pytest

from planner.core.clock import FixedClock
from planner.core.db import dispose_db, init_db
from planner.plugins.coursework import service
from planner.plugins.email_digest.dispatchers import MailDispatcher

# Monday
NOW = datetime(2024, 3, 4, 8, 0)


class RecordingDispatcher(MailDispatcher):
    """Collects messages instead of sending them; can be told to fail."""

    def __init__(self, succeed=True, raise_error=False):
        self.succeed = succeed
        self.raise_error = raise_error
        self.sent = []

    def send(self, kind, message):
        if self.raise_error:
            raise ConnectionError("smtp down")
        if self.succeed:
            self.sent.append((kind, message))
        return self.succeed

    def kinds(self):
        return [kind for kind, _ in self.sent]


@pytest.fixture
def db(tmp_path):
    """Fresh database file for each test."""
    dispose_db()
    init_db(db_url=f"sqlite:///{tmp_path / 'planner-test.db'}")
    yield
    dispose_db()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def user(db):
    return service.create_user("student@example.com", "Test Student")


@pytest.fixture
def semester(user):
    return service.create_semester(user.id, "Spring 2024", date(2024, 1, 8), date(2024, 5, 10), now=datetime(2024, 1, 1))


@pytest.fixture
def course(semester):
    return service.create_course(semester.id, "Biology", "BIO101", now=datetime(2024, 1, 1))


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def make_dispatcher():
    """Factory for dispatchers that fail or raise on demand."""
    return RecordingDispatcher
