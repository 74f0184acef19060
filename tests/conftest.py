"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from tests.helpers import LONDON
from weather_history.config import UserSettings


@pytest.fixture
def user_settings() -> UserSettings:
    """Settings with an API key, pointed at London."""
    return UserSettings(api_key="test-key", location=LONDON)
