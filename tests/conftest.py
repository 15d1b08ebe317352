"""Pytest configuration and fixtures."""

import pytest

from wava.core.config import get_settings


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("REPLICATE_API_TOKEN", "")
    monkeypatch.delenv("GEMINI_MODEL_QUEUE", raising=False)
    monkeypatch.delenv("SDXL_SCHEDULER", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
