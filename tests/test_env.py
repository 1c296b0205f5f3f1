import pytest

from keepr.keepr_env import KeeprConfig, KeeprEnvironment, render_config
from keepr.shared import date_format, log_msg, parse, parse_date
from datetime import date, datetime


@pytest.mark.unit
class TestEnvironment:
    def test_home_from_environment(self, keepr_home):
        env = KeeprEnvironment()
        assert env.home == keepr_home
        assert env.db_path == keepr_home / "keepr.db"

    def test_home_from_xdg(self, monkeypatch, tmp_path):
        monkeypatch.delenv("KEEPR_HOME")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        assert KeeprEnvironment().home == tmp_path / "xdg" / "keepr"

    def test_workspace_in_current_directory(self, tmp_path, monkeypatch):
        monkeypatch.delenv("KEEPR_HOME")
        (tmp_path / "config.toml").write_text("", encoding="utf-8")
        (tmp_path / "keepr.db").write_bytes(b"")
        assert KeeprEnvironment().home == tmp_path

    def test_config_created_with_defaults(self, keepr_home):
        env = KeeprEnvironment()
        config = env.load_config()
        assert config == KeeprConfig()
        assert env.config_path.read_text(encoding="utf-8") == render_config(config)

    def test_missing_values_are_filled_in(self, keepr_home):
        keepr_home.mkdir(parents=True)
        (keepr_home / "config.toml").write_text(
            "[purchases]\nsoon_months = 3\n", encoding="utf-8"
        )
        env = KeeprEnvironment()
        assert env.config.purchases.soon_months == 3
        assert env.config.movies.rating_max == 10
        assert "[weather]" in env.config_path.read_text(encoding="utf-8")

    def test_unused_settings_are_dropped(self, keepr_home):
        keepr_home.mkdir(parents=True)
        (keepr_home / "config.toml").write_text(
            '[ui]\ntheme = "dark"\nampm = true\n', encoding="utf-8"
        )
        env = KeeprEnvironment()
        assert env.config.ui.ampm is True
        assert "theme" not in env.config_path.read_text(encoding="utf-8")

    def test_invalid_config_falls_back_to_defaults(self, keepr_home):
        keepr_home.mkdir(parents=True)
        (keepr_home / "config.toml").write_text(
            '[storage]\nbackend = "cloud"\n', encoding="utf-8"
        )
        assert KeeprEnvironment().config.storage.backend == "blob"

    def test_ensure_calls_db_initializer_once(self, keepr_home):
        created = []
        env = KeeprEnvironment()
        env.ensure(init_db_fn=created.append)
        assert created == [env.db_path]
        assert env.config_path.exists()


@pytest.mark.unit
class TestDates:
    def test_relative_words(self, frozen_time):
        assert parse("today") == date(2025, 1, 15)
        assert parse("Yesterday") == date(2025, 1, 14)
        assert parse_date("tomorrow") == date(2025, 1, 16)

    def test_dates_and_datetimes(self):
        assert parse("2025-03-04") == date(2025, 3, 4)
        assert parse("2025-03-04 18:30") == datetime(2025, 3, 4, 18, 30)
        assert parse_date("2025-03-04 18:30") == date(2025, 3, 4)

    def test_day_first(self):
        assert parse_date("04/03/2025", yearfirst=False, dayfirst=True) == date(2025, 3, 4)
        assert date_format(yearfirst=False, dayfirst=True) == "%d-%m-%Y"

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse("not a date")


@pytest.mark.unit
def test_log_msg_writes_markdown(keepr_home):
    log_msg("something happened")
    (log,) = (keepr_home / "logs").glob("log_*.md")
    text = log.read_text(encoding="utf-8")
    assert "log_msg (test_log_msg_writes_markdown)" in text
    assert "something happened" in text
