"""Shared fixtures for Sift tests."""

from datetime import datetime, timezone

import pytest

from sift.common.store import SiftStore


@pytest.fixture
def store(tmp_path):
    """A fresh SQLite store per test"""
    s = SiftStore(tmp_path / "sift.db")
    yield s
    s.close()


@pytest.fixture
def now():
    return datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
