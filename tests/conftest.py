"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
from datetime import datetime, timezone

import pytest

# Add src to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

# Set up test environment variables before importing any modules
os.environ.setdefault('SUPABASE_URL', 'https://testproject.supabase.co')
os.environ.setdefault('SUPABASE_SERVICE_ROLE_KEY', 'test-service-role-key')
os.environ.setdefault('EMAIL_SENDER', 'Expiry Tracker <reminders@example.com>')
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-west-2')
os.environ.setdefault('ENVIRONMENT', 'test')
os.environ.setdefault('LOG_LEVEL', 'INFO')

from domain.models import Item, SendResult, User


REFERENCE_NOW = datetime(2025, 6, 10, 8, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def reference_now():
    """Fixed run instant: 2025-06-10T08:00:00Z (tomorrow = 2025-06-11)."""
    return REFERENCE_NOW


@pytest.fixture
def make_item():
    """Factory for Item instances with sensible defaults."""
    counter = {'n': 0}

    def _make(name, expiry_date, user_id='u1', deleted_at=None, **kwargs):
        counter['n'] += 1
        return Item(
            id=f"item-{counter['n']}",
            user_id=user_id,
            name=name,
            expiry_date=expiry_date,
            deleted_at=deleted_at,
            **kwargs
        )

    return _make


class FakeStore:
    """In-memory data store with optional per-user failures."""

    def __init__(self, users, items_by_user=None, failing_users=(), users_error=None):
        self.users = list(users)
        self.items_by_user = items_by_user or {}
        self.failing_users = set(failing_users)
        self.users_error = users_error
        self.item_calls = []

    def list_users(self):
        if self.users_error is not None:
            raise self.users_error
        return list(self.users)

    def list_active_items_for_user(self, user_id):
        from integrations.supabase_store import DataStoreError

        self.item_calls.append(user_id)
        if user_id in self.failing_users:
            raise DataStoreError(f"connection reset while fetching {user_id}")
        return list(self.items_by_user.get(user_id, []))


class FakeSender:
    """Records sent emails; rejects configured recipients."""

    def __init__(self, rejected=()):
        self.rejected = set(rejected)
        self.sent = []

    def send(self, to, subject, html):
        if to in self.rejected:
            return SendResult(success=False, error_message="MessageRejected: Email address is not verified")
        self.sent.append({'to': to, 'subject': subject, 'html': html})
        return SendResult(success=True, message_id=f"msg-{len(self.sent)}")


@pytest.fixture
def user_a():
    return User(id='u1', email='a@x.com')


@pytest.fixture
def user_b():
    return User(id='u2', email='b@y.com', display_name='Bea')


@pytest.fixture
def fake_sender():
    return FakeSender()
