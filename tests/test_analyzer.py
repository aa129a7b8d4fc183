"""Tests for the access-log line parser."""

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from mond.analyzer import parse_raw_log, resolve_timezone


class TestCanonicalLine:
    def test_fields(self, sample_line):
        entry = parse_raw_log(sample_line)
        assert entry.ip == "10.129.38.1"
        assert entry.status == "200"
        assert entry.path == "/futures"
        assert entry.method == "GET"
        assert entry.http == "HTTP/1.1"
        assert entry.remote_ip == "92.104.237.155"
        assert entry.raw == sample_line

    def test_timestamp_uses_embedded_offset(self, sample_line):
        entry = parse_raw_log(sample_line)
        want = datetime(2021, 7, 2, 22, 50, 59, tzinfo=ZoneInfo("Europe/Zurich"))
        assert entry.timestamp == int(want.timestamp()) == 1625259059

    def test_configured_zone_does_not_shift_the_instant(self, sample_line):
        entry = parse_raw_log(sample_line, tz=ZoneInfo("America/New_York"))
        assert entry.timestamp == 1625259059

    def test_received_at(self, sample_line):
        assert parse_raw_log(sample_line, received_at=42).unix == 42

    def test_unix_defaults_to_now(self, sample_line):
        before = int(datetime.now(timezone.utc).timestamp())
        assert parse_raw_log(sample_line).unix >= before


class TestDegradation:
    @pytest.mark.parametrize("raw", ["", "Test", "just random text", "ERROR something broke 12"])
    def test_unparseable_lines_keep_raw(self, raw):
        entry = parse_raw_log(raw, received_at=1)
        assert entry.raw == raw
        assert entry.ip == ""
        assert entry.path == ""
        assert entry.method == ""
        assert entry.http == ""
        assert entry.remote_ip == ""
        assert entry.status == ""
        assert entry.timestamp == 0

    def test_missing_request_line(self):
        entry = parse_raw_log('10.0.0.1 - - [01/Jan/2026:00:00:00 +0000] "-" 400 0')
        assert entry.ip == "10.0.0.1"
        assert entry.status == "400"
        assert (entry.method, entry.path, entry.http) == ("", "", "")

    def test_bad_offset_without_zone_logs_and_zeroes(self, monkeypatch, caplog):
        monkeypatch.delenv("TZ", raising=False)
        with caplog.at_level(logging.WARNING, logger="mond.analyzer"):
            entry = parse_raw_log('10.0.0.1 - - [01/Jan/2026:00:00:00 CEST] "GET / HTTP/1.1" 200 1')
        assert entry.timestamp == 0
        assert entry.status == "200"
        assert "cannot parse time" in caplog.text

    def test_bad_offset_falls_back_to_configured_zone(self, monkeypatch):
        monkeypatch.delenv("TZ", raising=False)
        entry = parse_raw_log('10.0.0.1 - - [01/Jan/2026:00:00:00 CEST] "GET / HTTP/1.1" 200 1', tz=timezone.utc)
        assert entry.timestamp == int(datetime(2026, 1, 1, tzinfo=timezone.utc).timestamp())

    def test_missing_offset_uses_process_tz(self, monkeypatch):
        monkeypatch.setenv("TZ", "UTC")
        entry = parse_raw_log("10.0.0.1 - - [01/Jan/2026:00:00:00] \"GET / HTTP/1.1\" 200 1")
        assert entry.timestamp == int(datetime(2026, 1, 1, tzinfo=timezone.utc).timestamp())

    def test_invalid_date_is_zero(self, monkeypatch):
        monkeypatch.setenv("TZ", "UTC")
        entry = parse_raw_log('10.0.0.1 - - [41/Foo/2026:00:00:00 +0000] "GET / HTTP/1.1" 200 1')
        assert entry.timestamp == 0
        assert entry.ip == "10.0.0.1"


class TestHeuristics:
    def test_forwarded_ip_is_last_quoted_ip(self):
        raw = '1.1.1.1 - - [01/Jan/2026:00:00:00 +0000] "GET / HTTP/1.1" 200 1 "2.2.2.2" "UA" "3.3.3.3"'
        assert parse_raw_log(raw).remote_ip == "3.3.3.3"

    def test_status_is_first_free_standing_three_digits(self):
        raw = '1.1.1.1 - - [01/Jan/2026:00:00:00 +0000] "GET /a/123/b HTTP/1.1" 404 512'
        assert parse_raw_log(raw).status == "404"

    def test_ip_must_lead_the_line(self):
        assert parse_raw_log('client 1.1.1.1 "GET / HTTP/1.0" 200 1').ip == ""

    def test_path_with_query(self):
        raw = '1.1.1.1 - - [01/Jan/2026:00:00:00 +0000] "POST /api/v1?x=1 HTTP/2.0" 201 0'
        entry = parse_raw_log(raw)
        assert (entry.method, entry.path, entry.http) == ("POST", "/api/v1?x=1", "HTTP/2.0")


class TestResolveTimezone:
    def test_empty(self):
        assert resolve_timezone("") is None
        assert resolve_timezone(None) is None

    def test_known(self):
        assert resolve_timezone("Europe/Zurich") == ZoneInfo("Europe/Zurich")

    def test_unknown_is_ignored(self):
        assert resolve_timezone("Not/AZone") is None
