from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from config import LOCAL_TZ
from database import make_session_factory
from services.errors import ExternalServiceFailure
from services.reminder_store import ReminderStore

# 2025-06-02 is a Monday
MONDAY_9AM = datetime(2025, 6, 2, 9, 0, tzinfo=LOCAL_TZ)


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeCalendar:
    def __init__(self, events=None, fail_insert: bool = False, fail_list: bool = False):
        self.events = list(events or [])
        self.fail_insert = fail_insert
        self.fail_list = fail_list
        self.inserted = []
        self.list_calls = []

    def insert(self, summary, description, start_iso, end_iso, attendees=None):
        if self.fail_insert:
            raise ExternalServiceFailure("gcal", "Google Calendar insert failed", 502)
        event = {
            "id": f"ev{len(self.inserted) + 1}",
            "summary": summary,
            "description": description,
            "start": {"dateTime": start_iso},
            "end": {"dateTime": end_iso},
            "attendees": [{"email": a} for a in attendees or []],
        }
        self.inserted.append(event)
        return event

    def list(self, time_min, time_max):
        self.list_calls.append((time_min, time_max))
        if self.fail_list:
            raise ExternalServiceFailure("gcal", "Google Calendar list failed", 502)
        return list(self.events)


class FakeMessenger:
    def __init__(self, fail_for=(), raise_for=()):
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)
        self.sent = []

    def send(self, identity, text, media_url=None):
        if identity in self.raise_for:
            raise RuntimeError("twilio down")
        if identity in self.fail_for:
            return False
        self.sent.append((identity, text))
        return True


class FakeTimers:
    def __init__(self):
        self.armed = []

    def arm(self, event_id, fire_at, identity, text):
        self.armed.append((event_id, fire_at, identity, text))


@pytest.fixture
def clock():
    return Clock(MONDAY_9AM)


@pytest.fixture
def session_factory(tmp_path):
    return make_session_factory(f"sqlite:///{tmp_path / 'assistant.db'}")


@pytest.fixture
def store(session_factory, clock):
    return ReminderStore(session_factory, now_fn=clock)


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def timers():
    return FakeTimers()
