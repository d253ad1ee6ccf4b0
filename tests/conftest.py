"""
Pytest configuration and shared fixtures.
"""

import pytest

from mountify.dependencies import reset_singletons
from mountify.models import ServerProfile


@pytest.fixture(autouse=True)
def clean_singletons():
    """Automatically reset singletons before each test."""
    reset_singletons()
    yield
    reset_singletons()


@pytest.fixture
def alice_profile() -> ServerProfile:
    """An unsaved profile for alice@203.0.113.5 mapped to S:."""
    return ServerProfile(
        name="Alice home",
        host="203.0.113.5",
        port=22,
        username="alice",
        password="pw",
        drive_letter="S",
        remote_path="/home/alice",
    )
