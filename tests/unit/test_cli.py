"""Tests for the chatpicking CLI commands."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from chatpicking.cli import collect, fetch, main
from chatpicking.errors import ConnectTimeout, Interrupted, RequestTimeout
from chatpicking.report import CollectReport, FetchReport, MessageRecord

CLEAN_ENV = {"NAPCAT_WS": None, "NAPCAT_GROUP": None, "NAPCAT_TOKEN": None}


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _fetch_report() -> FetchReport:
    return FetchReport(
        group_id=123,
        fetched_count=1,
        requested_count=5,
        fetch_time="2024-01-01T00:00:01.000Z",
        start_time="2024-01-01T00:00:00.000Z",
        end_time="2024-01-01T00:00:01.000Z",
        messages=(MessageRecord(sender="alice", user_id=1, content="你好"),),
    )


def _collect_report() -> CollectReport:
    return CollectReport(
        group_id=123,
        collected_count=0,
        duration_minutes=1,
        start_time="2024-01-01T00:00:00.000Z",
        end_time="2024-01-01T00:01:00.000Z",
        finish_reason="deadline",
    )


class TestHelp:
    """Tests for --help output."""

    @pytest.mark.parametrize("command", [fetch, collect, main])
    def test_help_exits_zero(self, runner: CliRunner, command):
        result = runner.invoke(command, ["--help"], env=CLEAN_ENV)

        assert result.exit_code == 0
        assert "Usage" in result.output

    def test_fetch_help_lists_options(self, runner: CliRunner):
        result = runner.invoke(fetch, ["--help"], env=CLEAN_ENV)

        for option in ("--napcat", "--group", "--count", "--token"):
            assert option in result.output


class TestArgumentErrors:
    """Tests for missing or invalid arguments."""

    @pytest.mark.parametrize("command", [fetch, collect])
    def test_missing_group(self, runner: CliRunner, command):
        result = runner.invoke(command, [], env=CLEAN_ENV)

        assert result.exit_code == 1
        error = json.loads(result.stderr)
        assert error["success"] is False
        assert "--group" in error["error"]
        assert result.stdout == ""

    def test_non_numeric_group(self, runner: CliRunner):
        result = runner.invoke(fetch, ["--group", "abc"], env=CLEAN_ENV)

        assert result.exit_code == 1
        assert json.loads(result.stderr)["success"] is False


class TestFetchCommand:
    """Tests for the fetch command."""

    def test_success_prints_report(self, runner: CliRunner):
        flow = AsyncMock(return_value=_fetch_report())

        with patch("chatpicking.cli.fetch_history", flow):
            result = runner.invoke(
                fetch, ["--group", "123", "--count", "5", "--token", "tok"], env=CLEAN_ENV
            )

        assert result.exit_code == 0
        report = json.loads(result.stdout)
        assert report["success"] is True
        assert report["fetched_count"] == 1
        assert report["messages"][0]["content"] == "你好"

        config, group_id, count = flow.call_args.args
        assert group_id == 123
        assert count == 5
        assert config.access_token == "tok"
        assert config.url == "ws://127.0.0.1:3001"

    def test_environment_fallbacks(self, runner: CliRunner):
        flow = AsyncMock(return_value=_fetch_report())
        env = {"NAPCAT_WS": "ws://bus:9000", "NAPCAT_GROUP": "777", "NAPCAT_TOKEN": "envtok"}

        with patch("chatpicking.cli.fetch_history", flow):
            result = runner.invoke(fetch, [], env=env)

        assert result.exit_code == 0
        config, group_id, count = flow.call_args.args
        assert config.url == "ws://bus:9000"
        assert config.access_token == "envtok"
        assert group_id == 777
        assert count == 100

    def test_failure_prints_error_object(self, runner: CliRunner):
        flow = AsyncMock(side_effect=RequestTimeout("get_group_msg_history"))

        with patch("chatpicking.cli.fetch_history", flow):
            result = runner.invoke(fetch, ["--group", "123"], env=CLEAN_ENV)

        assert result.exit_code == 1
        assert result.stdout == ""
        error = json.loads(result.stderr.strip().splitlines()[-1])
        assert error == {"success": False, "error": "Request timed out: get_group_msg_history"}

    def test_unexpected_failure_prints_error_object(self, runner: CliRunner):
        flow = AsyncMock(side_effect=KeyError("boom"))

        with patch("chatpicking.cli.fetch_history", flow):
            result = runner.invoke(fetch, ["--group", "123"], env=CLEAN_ENV)

        assert result.exit_code == 1
        assert json.loads(result.stderr.strip().splitlines()[-1])["success"] is False

    def test_count_must_be_positive(self, runner: CliRunner):
        result = runner.invoke(fetch, ["--group", "123", "--count", "0"], env=CLEAN_ENV)
        assert result.exit_code != 0


class TestCollectCommand:
    """Tests for the collect command."""

    def test_success_prints_report(self, runner: CliRunner):
        flow = AsyncMock(return_value=_collect_report())

        with patch("chatpicking.cli.collect_messages", flow):
            result = runner.invoke(
                collect, ["--group", "123", "--duration", "1"], env=CLEAN_ENV
            )

        assert result.exit_code == 0
        report = json.loads(result.stdout)
        assert report["collected_count"] == 0
        assert report["finish_reason"] == "deadline"
        assert "Collecting group 123" in result.stderr

        _, group_id, duration = flow.call_args.args
        assert group_id == 123
        assert duration == 1

    def test_connect_timeout(self, runner: CliRunner):
        flow = AsyncMock(side_effect=ConnectTimeout("ws://127.0.0.1:3001", 10.0))

        with patch("chatpicking.cli.collect_messages", flow):
            result = runner.invoke(collect, ["--group", "123"], env=CLEAN_ENV)

        assert result.exit_code == 1
        error = json.loads(result.stderr.strip().splitlines()[-1])
        assert "Timed out connecting" in error["error"]

    def test_interrupt_while_connecting(self, runner: CliRunner):
        flow = AsyncMock(side_effect=Interrupted("Interrupted before collection started"))

        with patch("chatpicking.cli.collect_messages", flow):
            result = runner.invoke(collect, ["--group", "123"], env=CLEAN_ENV)

        assert result.exit_code == 1
        assert result.stdout == ""
        error = json.loads(result.stderr.strip().splitlines()[-1])
        assert error == {"success": False, "error": "Interrupted before collection started"}

    def test_grouped_entry_point(self, runner: CliRunner):
        flow = AsyncMock(return_value=_collect_report())

        with patch("chatpicking.cli.collect_messages", flow):
            result = runner.invoke(main, ["collect", "--group", "123"], env=CLEAN_ENV)

        assert result.exit_code == 0
        assert flow.call_args.args[2] == 60
