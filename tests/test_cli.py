import os
from unittest import mock

import pytest

from cclog.cli import (
    Config,
    Mode,
    Scope,
    build_parser,
    derive_mode,
    main,
    resolve_default_directory,
)

from conftest import assistant, user


def parse(*argv):
    return build_parser().parse_args(list(argv))


class TestDeriveMode:
    def test_no_input_browses(self):
        assert derive_mode(parse()) == (Mode.TUI, Scope.DIRECTORY)

    def test_recursive_implies_tui(self, tmp_path):
        assert derive_mode(parse("-r", str(tmp_path))) == (Mode.TUI, Scope.RECURSIVE)
        assert derive_mode(parse("-r")) == (Mode.TUI, Scope.RECURSIVE)

    def test_tui_flag(self, tmp_path):
        assert derive_mode(parse("--tui", str(tmp_path))) == (Mode.TUI, Scope.DIRECTORY)

    def test_directory_conversion(self, tmp_path):
        assert derive_mode(parse(str(tmp_path))) == (Mode.CONVERT, Scope.DIRECTORY)
        assert derive_mode(parse("-d", "logs")) == (Mode.CONVERT, Scope.DIRECTORY)

    def test_file_conversion(self):
        assert derive_mode(parse("session.jsonl")) == (Mode.CONVERT, Scope.FILE)

    def test_config_from_args(self):
        config = Config.from_args(parse("s.jsonl", "--include-all", "--no-resume-cd", "-o", "out.md"))
        assert config.include_all
        assert not config.resume_change_directory
        assert config.output == "out.md"


class TestDefaultDirectory:
    def test_first_resolver_wins(self, tmp_path):
        assert resolve_default_directory([lambda: str(tmp_path), lambda: "."]) == str(tmp_path)

    def test_skips_missing(self, tmp_path):
        assert resolve_default_directory([lambda: None, lambda: str(tmp_path / "x"), lambda: "."]) == "."


class TestMain:
    def test_converts_file_to_stdout(self, capsys, write_jsonl):
        path = write_jsonl("s.jsonl", [user("hello"), assistant([{"type": "text", "text": "hi"}])])
        assert main([path]) == 0
        out = capsys.readouterr().out
        assert out.startswith("# Conversation Log")
        assert "hello" in out

    def test_system_messages_are_dropped(self, capsys, write_jsonl):
        path = write_jsonl("s.jsonl", [
            {"type": "system", "message": {"content": "internal"}},
            user("visible"),
        ])
        assert main([path]) == 0
        out = capsys.readouterr().out
        assert "visible" in out
        assert "internal" not in out
        assert "**Messages:** 1" in out

    def test_include_all_keeps_system_messages(self, capsys, write_jsonl):
        path = write_jsonl("s.jsonl", [{"type": "system", "message": {"content": "internal"}}, user("visible")])
        assert main([path, "--include-all"]) == 0
        assert "internal" in capsys.readouterr().out

    def test_show_title(self, capsys, write_jsonl):
        path = write_jsonl("s.jsonl", [{"type": "summary", "summary": "Topic"}, user("visible")])
        assert main([path, "--show-title"]) == 0
        assert capsys.readouterr().out.startswith("# Topic\n\n# Conversation Log")

    def test_output_file_creates_parents(self, tmp_path, write_jsonl):
        path = write_jsonl("s.jsonl", [user("hello")])
        output = tmp_path / "out" / "nested" / "s.md"
        assert main([path, "-o", str(output)]) == 0
        assert "hello" in output.read_text(encoding="utf-8")

    def test_directory_conversion(self, capsys, tmp_path, write_jsonl):
        write_jsonl("a.jsonl", [user("first")])
        write_jsonl("b.jsonl", [user("second")])
        assert main([str(tmp_path)]) == 0
        out = capsys.readouterr().out
        assert "**Total Conversations:** 2" in out

    def test_directory_show_title(self, capsys, tmp_path, write_jsonl):
        write_jsonl("a.jsonl", [{"type": "summary", "summary": "My title"}, user("first")])
        write_jsonl("b.jsonl", [user("second")])
        assert main([str(tmp_path), "-d", "--show-title"]) == 0
        assert capsys.readouterr().out.startswith("# My title\n\n# Claude Conversation Logs")

    def test_output_file_is_announced(self, capsys, tmp_path, write_jsonl):
        path = write_jsonl("s.jsonl", [user("hello")])
        output = str(tmp_path / "s.md")
        assert main([path, "-o", output]) == 0
        assert capsys.readouterr().out == f"Output written to: {output}\n"

    def test_parse_error_exits_1(self, capsys, write_jsonl):
        path = write_jsonl("s.jsonl", ["{broken"])
        assert main([path]) == 1
        err = capsys.readouterr().err
        assert "Error:" in err
        assert "cclog -h" in err

    def test_missing_file_exits_1(self, tmp_path):
        assert main([str(tmp_path / "missing.jsonl")]) == 1

    def test_help_and_usage_errors(self, capsys):
        assert main(["-h"]) == 0
        assert main(["--no-such-flag"]) == 1

    def test_tui_prints_selection(self, capsys, tmp_path):
        with mock.patch("cclog.tui.run_browser", return_value="/x/s.jsonl") as run_browser:
            assert main(["--tui", str(tmp_path), "--no-resume-cd"]) == 0
        assert capsys.readouterr().out == "/x/s.jsonl\n"
        run_browser.assert_called_once_with(str(tmp_path), recursive=False, resume_change_directory=False)

    def test_tui_cancel_prints_nothing(self, capsys, tmp_path):
        with mock.patch("cclog.tui.run_browser", return_value=None):
            assert main(["-r", str(tmp_path)]) == 0
        assert capsys.readouterr().out == ""

    def test_tui_rejects_files(self, write_jsonl):
        assert main(["--tui", write_jsonl("s.jsonl", [user("x")])]) == 1

    def test_log_file(self, tmp_path, write_jsonl):
        log_file = tmp_path / "cclog.log"
        path = write_jsonl("s.jsonl", [user("x")])
        assert main([path, "-o", str(tmp_path / "s.md"), "--log-file", str(log_file), "-v"]) == 0
        assert "wrote" in log_file.read_text(encoding="utf-8")
