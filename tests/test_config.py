"""Tests for env-driven settings."""

import logging

from mond.config import AgentSettings, CollectorSettings, split_list

ENV_VARS = (
    "MOND_DB_FILE", "MOND_HOST", "MOND_PORT", "MOND_USERNAME", "MOND_PW", "MOND_TZ", "TZ",
    "MOND_LOG_LEVEL", "MOND_RELOAD", "MOND_REPORT_URL", "MOND_APP_NAME", "MOND_WEBSITES",
    "MOND_START_CMD", "MOND_INTERVAL_S", "MOND_PROBE_TIMEOUT_S",
)


def clear_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSplitList:
    def test_empty(self):
        assert split_list("") == []

    def test_trims_and_skips_blanks(self):
        assert split_list(" http://a , ,http://b") == ["http://a", "http://b"]


class TestCollectorSettings:
    def test_defaults(self, monkeypatch, caplog):
        clear_env(monkeypatch)
        with caplog.at_level(logging.WARNING):
            s = CollectorSettings.from_env()
        assert s.db_file == "apps.db.json"
        assert (s.host, s.port) == ("127.0.0.1", 5000)
        assert s.credentials is None
        assert s.timezone is None
        assert s.reload is False
        assert caplog.records == []

    def test_overrides(self, monkeypatch):
        clear_env(monkeypatch)
        monkeypatch.setenv("MOND_DB_FILE", "/data/db.json")
        monkeypatch.setenv("MOND_PORT", "8080")
        monkeypatch.setenv("MOND_USERNAME", "admin")
        monkeypatch.setenv("MOND_PW", "pw")
        monkeypatch.setenv("MOND_RELOAD", "1")
        s = CollectorSettings.from_env()
        assert s.db_file == "/data/db.json"
        assert s.port == 8080
        assert s.credentials == ("admin", "pw")
        assert s.reload is True

    def test_user_without_password_disables_auth(self, monkeypatch):
        clear_env(monkeypatch)
        monkeypatch.setenv("MOND_USERNAME", "admin")
        assert CollectorSettings.from_env().credentials is None

    def test_timezone_falls_back_to_tz(self, monkeypatch):
        clear_env(monkeypatch)
        monkeypatch.setenv("TZ", "Europe/Zurich")
        assert CollectorSettings.from_env().timezone == "Europe/Zurich"
        monkeypatch.setenv("MOND_TZ", "UTC")
        assert CollectorSettings.from_env().timezone == "UTC"


class TestAgentSettings:
    def test_env(self, monkeypatch):
        clear_env(monkeypatch)
        monkeypatch.setenv("MOND_REPORT_URL", "http://collector:5000")
        monkeypatch.setenv("MOND_WEBSITES", "http://a,http://b")
        monkeypatch.setenv("MOND_START_CMD", " ping 127.0.0.1 ")
        monkeypatch.setenv("MOND_INTERVAL_S", "2.5")
        s = AgentSettings.from_env([])
        assert s.report_url == "http://collector:5000"
        assert s.app_name == "test"
        assert s.websites == ["http://a", "http://b"]
        assert s.start_cmd == "ping 127.0.0.1"
        assert s.interval_s == 2.5
        assert s.probe_timeout_s == 10.0

    def test_args_override_env(self, monkeypatch):
        clear_env(monkeypatch)
        monkeypatch.setenv("MOND_WEBSITES", "http://a")
        s = AgentSettings.from_env(["http://collector", "http://x", "http://y"])
        assert s.report_url == "http://collector"
        assert s.websites == ["http://x", "http://y"]

    def test_url_only_keeps_env_websites(self, monkeypatch):
        clear_env(monkeypatch)
        monkeypatch.setenv("MOND_WEBSITES", "http://a")
        s = AgentSettings.from_env(["http://collector"])
        assert s.websites == ["http://a"]
