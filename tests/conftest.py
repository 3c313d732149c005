"""Shared fixtures for FigNotes tests."""

from datetime import datetime, timedelta, timezone

import pytest

from fignotes.models import Task

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed reference time."""
    return NOW


@pytest.fixture
def clock():
    """Clock returning the fixed reference time."""
    return lambda: NOW


@pytest.fixture
def make_task():
    """Factory for tasks created ``days_old`` days before NOW."""

    def _make(comment_id="c1", days_old=0, **fields):
        fields.setdefault("created_at", NOW - timedelta(days=days_old))
        task = Task(comment_id=comment_id, **fields)
        return task.model_copy(update={"age_in_days": days_old})

    return _make


@pytest.fixture
def raw_comment():
    """Factory for raw REST comment records."""

    def _make(comment_id="c1", message="Fix the spacing", days_old=0, resolved=False, node_id=None, handle="dana", **extra):
        record = {
            "id": comment_id,
            "message": message,
            "created_at": (NOW - timedelta(days=days_old)).isoformat().replace("+00:00", "Z"),
            "resolved_at": NOW.isoformat().replace("+00:00", "Z") if resolved else None,
            "user": {"handle": handle},
            "client_meta": {"node_id": node_id} if node_id else None,
        }
        record.update(extra)
        return record

    return _make
