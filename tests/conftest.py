"""
Shared pytest fixtures for keepr tests.

This module provides common fixtures used across all test files, including:
- Time freezing utilities
- Test environment setup (an isolated KEEPR_HOME per test)
- Database and backend fixtures
- One fixture per book
"""

import pytest
from datetime import date
from freezegun import freeze_time

from keepr.keepr_env import KeeprEnvironment
from keepr.model import BlobBackend, DatabaseManager, MemoryBackend, RowBackend
from keepr.movies import MovieDiary
from keepr.planner import Planner
from keepr.purchases import PurchaseTracker
from keepr.weather import WeatherCalendar
from keepr.grocery import GroceryList


@pytest.fixture(autouse=True)
def keepr_home(tmp_path, monkeypatch):
    """
    Every test gets its own workspace so that logs and config files
    never land in the real home directory.
    """
    home = tmp_path / "keepr-home"
    monkeypatch.setenv("KEEPR_HOME", str(home))
    monkeypatch.chdir(tmp_path)
    return home


@pytest.fixture
def frozen_time():
    """
    Provides a freezegun context that freezes time to 2025-01-15 12:00:00.

    Usage:
        def test_something(frozen_time):
            assert date.today() == date(2025, 1, 15)
    """
    with freeze_time("2025-01-15 12:00:00") as frozen:
        yield frozen


@pytest.fixture
def freeze_at():
    """
    Returns a function that freezes time to a specific datetime.

    Usage:
        def test_something(freeze_at):
            with freeze_at("2025-03-01 10:00:00"):
                ...
    """
    return freeze_time


@pytest.fixture
def mock_today(frozen_time):
    return date(2025, 1, 15)


@pytest.fixture
def test_env(keepr_home):
    """
    Provides a KeeprEnvironment rooted in the per-test home.
    """
    env = KeeprEnvironment(keepr_home)
    env.ensure(init_config=True, init_db_fn=None)
    env.load_config()
    return env


@pytest.fixture
def dbm(test_env):
    """
    Provides a DatabaseManager with a fresh database; closed after the test.
    """
    manager = DatabaseManager(test_env.db_path, test_env, reset=True)
    yield manager
    manager.close()


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture(params=["memory", "blob", "rows"])
def any_backend(request, dbm):
    """Runs a test once against each storage backend."""
    if request.param == "blob":
        return BlobBackend(dbm)
    if request.param == "rows":
        return RowBackend(dbm)
    return MemoryBackend()


@pytest.fixture
def diary(test_env, memory_backend):
    return MovieDiary(test_env, memory_backend)


@pytest.fixture
def planner(test_env, memory_backend):
    return Planner(test_env, memory_backend)


@pytest.fixture
def tracker(test_env, memory_backend):
    return PurchaseTracker(test_env, memory_backend)


@pytest.fixture
def weather_book(test_env, memory_backend):
    return WeatherCalendar(test_env, memory_backend)


@pytest.fixture
def groceries(test_env, memory_backend):
    return GroceryList(test_env, memory_backend)


class FailingBackend(MemoryBackend):
    """
    MemoryBackend whose saves can be switched to fail: all of them
    (`fail`), those for some keys (`fail_keys`) or every save after the
    next `saves_left`.
    """

    def __init__(self):
        super().__init__()
        self.fail = False
        self.fail_keys = set()
        self.saves_left = None

    def save(self, key, rows):
        if self.saves_left is not None:
            if self.saves_left <= 0:
                raise OSError("disk full")
            self.saves_left -= 1
        if self.fail or key in self.fail_keys:
            raise OSError("disk full")
        super().save(key, rows)


@pytest.fixture
def failing_backend():
    return FailingBackend()

