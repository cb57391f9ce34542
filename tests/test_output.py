"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- print_document, print_mapping and print_table in all three modes
- Global instance management and convenience functions
"""

from __future__ import annotations

import json

import pytest

from offsync.models import ActionStatus
from offsync.output import (
    OutputFormat,
    OutputManager,
    _cell,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)
from offsync import output as output_module


# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("offsync.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("offsync.output._is_tty", lambda: True)


def _plain(**kwargs) -> OutputManager:
    return OutputManager(format=OutputFormat.PLAIN, no_color=True, **kwargs)


# ------------------------------------------------------------------ #
# OutputFormat resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    """Test that AUTO format resolves correctly based on environment."""

    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.RICH

    def test_no_color_flag_forces_plain_on_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        mgr = OutputManager(format=OutputFormat.AUTO, no_color=True)
        assert mgr.format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, non_tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env_any_value(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb_disables_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term_keeps_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# stdout vs stderr discipline
# ------------------------------------------------------------------ #


class TestStdoutStderrDiscipline:
    """Data goes to stdout, diagnostics go to stderr."""

    def test_print_data_goes_to_stdout(self, capfd, non_tty):
        _plain().print_data("hello world")
        captured = capfd.readouterr()
        assert "hello world" in captured.out
        assert captured.err == ""

    @pytest.mark.parametrize("method", ["info", "success", "warning", "error", "suggest"])
    def test_diagnostics_go_to_stderr(self, capfd, non_tty, method):
        getattr(_plain(), method)("a message")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "a message" in captured.err

    def test_error_prefix_without_color(self, capfd, non_tty):
        _plain().error("sync failed")
        assert "Error: sync failed" in capfd.readouterr().err

    def test_warning_prefix_without_color(self, capfd, non_tty):
        _plain().warning("offline")
        assert "Warning: offline" in capfd.readouterr().err


class TestQuietMode:
    @pytest.mark.parametrize("method", ["info", "success", "suggest"])
    def test_quiet_suppresses(self, capfd, non_tty, method):
        getattr(_plain(quiet=True), method)("should not appear")
        assert capfd.readouterr().err == ""

    @pytest.mark.parametrize("method", ["warning", "error"])
    def test_quiet_keeps(self, capfd, non_tty, method):
        getattr(_plain(quiet=True), method)("important")
        assert "important" in capfd.readouterr().err

    def test_quiet_does_not_suppress_stdout_data(self, capfd, non_tty):
        _plain(quiet=True).print_document({"pending_actions": 2})
        assert "pending_actions\t2" in capfd.readouterr().out


class TestVerboseMode:
    def test_debug_hidden_by_default(self, capfd, non_tty):
        _plain().debug("should not appear")
        assert capfd.readouterr().err == ""

    def test_debug_shown_with_prefix(self, capfd, non_tty):
        _plain(verbose=True).debug("retrying GET /items")
        assert "[debug] retrying GET /items" in capfd.readouterr().err

    def test_flags_exposed(self, non_tty):
        mgr = OutputManager(quiet=True, verbose=True)
        assert mgr.is_quiet is True
        assert mgr.is_verbose is True


# ------------------------------------------------------------------ #
# Documents, mappings and tables
# ------------------------------------------------------------------ #


class TestPrintDocument:
    def test_json_is_parseable(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON)
        mgr.print_document({"offline": {"queued_requests": 1}, "items": [1, 2]})
        parsed = json.loads(capfd.readouterr().out)
        assert parsed == {"offline": {"queued_requests": 1}, "items": [1, 2]}

    def test_plain_dict_as_key_value(self, capfd, non_tty):
        _plain().print_document({"base_url": None, "cache": {"enabled": True}})
        lines = capfd.readouterr().out.splitlines()
        assert lines == ["base_url\t-", 'cache\t{"enabled": true}']

    def test_plain_list_and_scalar(self, capfd, non_tty):
        mgr = _plain()
        mgr.print_document(["a", "b"])
        mgr.print_document(42)
        assert capfd.readouterr().out.splitlines() == ["a", "b", "42"]

    def test_rich_produces_output(self, capfd, non_tty):
        OutputManager(format=OutputFormat.RICH, no_color=True).print_document({"key": "v"})
        captured = capfd.readouterr()
        assert "key" in captured.out
        assert captured.err == ""


class TestPrintMapping:
    def test_json_mapping_is_object(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_mapping({"pending_actions": 3})
        assert json.loads(capfd.readouterr().out) == {"pending_actions": 3}

    def test_plain_mapping_has_header(self, capfd, non_tty):
        _plain().print_mapping({"pending_actions": 3, "failed_actions": 0})
        lines = capfd.readouterr().out.splitlines()
        assert lines[0] == "Field\tValue"
        assert "pending_actions\t3" in lines


class TestPrintTable:
    def test_plain_rows(self, capfd, non_tty):
        _plain().print_table(["ID", "Method"], [["r1", "POST"], ["r2", "DELETE"]])
        assert capfd.readouterr().out.splitlines() == ["ID\tMethod", "r1\tPOST", "r2\tDELETE"]

    def test_json_records(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).print_table(["ID", "Method"], [["r1", "POST"]])
        assert json.loads(capfd.readouterr().out) == [{"ID": "r1", "Method": "POST"}]

    def test_rich_table_has_title(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.RICH, no_color=True)
        mgr.print_table(["ID"], [["r1"]], title="Queued requests")
        out = capfd.readouterr().out
        assert "Queued requests" in out
        assert "r1" in out


class TestCell:
    def test_none_is_dash(self):
        assert _cell(None) == "-"

    def test_enum_uses_value(self):
        assert _cell(ActionStatus.FAILED) == "failed"

    def test_containers_are_json(self):
        assert _cell({"id": 1}) == '{"id": 1}'


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_get_output_creates_default(self, non_tty):
        reset_output()
        first = get_output()
        assert first is get_output()

    def test_set_output_replaces(self):
        mgr = _plain()
        set_output(mgr)
        assert get_output() is mgr

    def test_convenience_functions_use_global(self, capfd, non_tty):
        set_output(_plain(verbose=True))
        output_module.info("info line")
        output_module.debug("debug line")
        output_module.print_mapping({"k": "v"})
        captured = capfd.readouterr()
        assert "info line" in captured.err
        assert "[debug] debug line" in captured.err
        assert "k\tv" in captured.out
