"""
Shared fixtures. Environment defaults are set before any shared module is
imported, since configuration is read at import time.
"""
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

for _name, _value in {
    'AWS_DEFAULT_REGION': 'ap-south-1',
    'AWS_ACCESS_KEY_ID': 'testing',
    'AWS_SECRET_ACCESS_KEY': 'testing',
    'JOBS_TABLE': 'test-jobs',
    'LABORERS_TABLE': 'test-laborers',
    'SOBRIETY_CHECKS_TABLE': 'test-sobriety-checks',
    'PAYMENTS_TABLE': 'test-payments',
    'WALLETS_TABLE': 'test-wallets',
    'WITHDRAWALS_TABLE': 'test-withdrawals',
    'CONNECTIONS_TABLE': 'test-connections',
    'WEBSOCKET_ENDPOINT': 'https://example.execute-api.ap-south-1.amazonaws.com/test',
}.items():
    os.environ.setdefault(_name, _value)

T0 = datetime(2024, 3, 1, 6, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for code that takes a `clock` callable."""

    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeAnalyzer:
    """Returns canned answers in order; an Exception instance is raised instead."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = 0

    def analyze(self, image_bytes):
        self.calls += 1
        answer = self.answers.pop(0) if self.answers else '{"status": "passed", "analysis": "alert"}'
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeChannel:
    def __init__(self, name, open_=True, error=None):
        self.name = name
        self.open = open_
        self.error = error
        self.sent = []

    def is_open(self):
        return self.open

    def send(self, message):
        if self.error:
            raise self.error
        self.sent.append(message)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def laborers():
    from shared.memory_stores import InMemoryProfileStore
    return InMemoryProfileStore([
        {'userId': 'A', 'skills': ['mason'], 'availabilityStatus': 'available'},
        {'userId': 'B', 'skills': ['mason'], 'availabilityStatus': 'busy'},
        {'userId': 'C', 'skills': ['carpenter'], 'availabilityStatus': 'available'},
    ])


@pytest.fixture
def pending_job():
    return {
        'jobId': 'J1',
        'customerId': 'cust-1',
        'status': 'pending',
        'skillsNeeded': [{'skill': 'mason', 'quantity': 1, 'rate': 800}],
        'location': 'Site 4, Pune',
        'totalAmount': 800,
    }


def fixed_image_store(laborer_id, check_id, image_bytes):
    return f'sobriety-checks/{laborer_id}/{check_id}.jpg'
