import os

import pytest

from tiercache.infrastructure.config import settings
from tiercache.infrastructure.filesystem.storage_provider import TempDirStorageProvider


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    """Provides a fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def storage_provider(tmp_path):
    """Provides a storage provider rooted in the test's temp directory."""
    return TempDirStorageProvider(tmp_path / "slots")


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keeps tests away from the user's real config file and .env."""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith(settings.ENV_PREFIX):
            monkeypatch.delenv(key)
    settings.reset_configuration()
    settings.clear_test_config()
    settings.load_configuration(config_file=tmp_path / "no-config.yaml")
    yield
    settings.clear_test_config()
    settings.reset_configuration()

