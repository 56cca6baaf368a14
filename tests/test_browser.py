import os
import random
from datetime import datetime

from cclog.browser import (
    Browser,
    BrowserPhase,
    Intent,
    annotate,
    list_directory,
    list_directory_recursive,
    project_name,
    scan_directory,
)
from cclog.models import LogEntry
from cclog.preview import PreviewController

from conftest import assistant, user


def entries_of(count):
    return [LogEntry(path=f"/logs/{i}.jsonl", name=f"{i}.jsonl", is_dir=False, mod_time=float(i))
            for i in range(count)]


def check_invariants(browser):
    if browser.entries:
        assert 0 <= browser.cursor < len(browser.entries)
        assert browser.scroll_offset <= browser.cursor <= browser.scroll_offset + browser.max_visible_rows - 1


class TestScanning:
    def test_parent_first_then_newest(self, tmp_path, write_jsonl):
        write_jsonl("old.jsonl", [user("old")], mtime=1000)
        write_jsonl("new.jsonl", [user("new")], mtime=2000)
        entries = list_directory(str(tmp_path))

        assert entries[0].is_parent
        assert entries[0].path == os.path.dirname(str(tmp_path))
        assert [e.name for e in entries[1:]] == ["new.jsonl", "old.jsonl"]

    def test_no_parent_at_root(self):
        assert not any(entry.is_parent for entry in list_directory(os.path.abspath(os.sep)))

    def test_recursive_lists_only_logs(self, tmp_path, write_jsonl):
        write_jsonl("a.jsonl", [user("a")], mtime=1000)
        write_jsonl(os.path.join("deep", "er", "b.jsonl"), [user("b")], mtime=3000)
        write_jsonl(os.path.join("deep", "notes.txt"), [user("c")])
        entries = list_directory_recursive(str(tmp_path))

        assert [e.name for e in entries] == ["b.jsonl", "a.jsonl"]
        assert not any(e.is_dir for e in entries)

    def test_scan_errors_give_empty_list(self, tmp_path):
        assert scan_directory(str(tmp_path / "missing")) == []
        assert scan_directory(str(tmp_path / "missing"), recursive=True) == []


class TestAnnotate:
    def test_skips_summary_and_meta(self, write_jsonl):
        path = write_jsonl("a.jsonl", [
            {"type": "summary", "summary": "ignored"},
            user("setup", isMeta=True, cwd="/home/me/work/myproject"),
            user("API Error: overloaded"),
            user("How do I\nparse this?"),
        ])
        assert annotate(path) == ("How do I parse this?", "myproject")

    def test_assistant_text_counts(self, write_jsonl):
        path = write_jsonl("a.jsonl", [assistant([{"type": "text", "text": "Hello"}])])
        assert annotate(path) == ("Hello", "")

    def test_unreadable(self, tmp_path, write_jsonl):
        assert annotate(str(tmp_path / "missing.jsonl")) == ("", "")
        assert annotate(write_jsonl("bad.jsonl", ["not json", "[]"])) == ("", "")

    def test_project_name(self):
        assert project_name("/a/b/proj/") == "proj"
        assert project_name("") == ""
        assert project_name("/") == ""


class TestLabel:
    def test_log_label(self):
        entry = LogEntry(path="/x/s.jsonl", name="s.jsonl", is_dir=False, mod_time=0,
                         title="A fairly long conversation title", project="proj")
        date_str = datetime.fromtimestamp(0).strftime("%Y-%m-%d %H:%M")
        assert entry.label(20) == f"{date_str} [proj] A fairly long con..."

    def test_untitled_log_shows_stem(self):
        entry = LogEntry(path="/x/abc.jsonl", name="abc.jsonl", is_dir=False)
        assert entry.label().endswith(" abc")

    def test_directory_label(self):
        assert LogEntry(path="/x/d", name="d", is_dir=True).label() == "d/"


class TestNavigation:
    def test_random_walk_keeps_invariants(self):
        rng = random.Random(1234)
        browser = Browser("/logs")
        browser.finish_load(entries_of(57))
        for _ in range(500):
            action = rng.choice(("navigate", "page", "first", "last", "resize"))
            if action == "navigate":
                browser.navigate(rng.randint(-30, 30))
            elif action == "page":
                browser.page(rng.choice((-1, 1)))
            elif action == "first":
                browser.goto_first()
            elif action == "last":
                browser.goto_last()
            else:
                browser.resize(rng.randint(20, 200), rng.randint(5, 60))
            check_invariants(browser)

    def test_clamped_without_wraparound(self):
        browser = Browser("/logs")
        browser.finish_load(entries_of(3))
        browser.navigate(-1)
        assert browser.cursor == 0
        browser.navigate(10)
        assert browser.cursor == 2

    def test_empty_listing(self):
        browser = Browser("/logs")
        browser.finish_load([])
        browser.navigate(1)
        assert browser.current_entry is None
        assert browser.enter() is Intent.NONE
        assert browser.select() is None

    def test_visible_entries_window(self):
        browser = Browser("/logs")
        browser.resize(80, 8)
        browser.finish_load(entries_of(10))
        browser.goto_last()
        visible = browser.visible_entries()
        assert len(visible) == browser.max_visible_rows
        assert visible[-1][0] == 9


class TestActions:
    def test_load_uses_scanner(self):
        calls = []

        def scanner(directory, recursive):
            calls.append((directory, recursive))
            return entries_of(2)

        browser = Browser("/logs", scanner=scanner)
        browser.load(recursive=True)
        assert calls == [("/logs", True)]
        assert browser.phase is BrowserPhase.READY
        assert len(browser.entries) == 2

    def test_enter_directory_resets(self):
        browser = Browser("/logs")
        browser.finish_load([LogEntry(path="/logs/a", name="a", is_dir=True)] + entries_of(5))
        browser.goto_first()
        assert browser.enter() is Intent.LOAD
        assert browser.current_directory == "/logs/a"
        assert (browser.cursor, browser.scroll_offset) == (0, 0)

    def test_enter_file_opens(self):
        browser = Browser("/logs")
        browser.finish_load(entries_of(2))
        assert browser.enter() is Intent.OPEN

    def test_select(self):
        browser = Browser("/logs")
        browser.finish_load([LogEntry(path="/logs/a", name="a", is_dir=True)] + entries_of(1))
        assert browser.select() is None
        browser.navigate(1)
        assert browser.select() == "/logs/0.jsonl"
        assert browser.phase is BrowserPhase.TERMINATED

    def test_toggle_recursive(self):
        browser = Browser("/logs")
        assert browser.toggle_recursive() is Intent.LOAD
        assert browser.recursive


class TestResize:
    def test_small_terminal_keeps_two_rows(self):
        browser = Browser("/logs", preview=PreviewController())
        browser.resize(80, 15)
        assert browser.max_visible_rows == 2

    def test_with_preview(self):
        browser = Browser("/logs", preview=PreviewController())
        browser.resize(80, 24)
        assert browser.max_visible_rows == 4

    def test_without_preview(self):
        preview = PreviewController()
        preview.toggle_visible()
        browser = Browser("/logs", preview=preview)
        browser.resize(80, 24)
        assert browser.max_visible_rows == 21

    def test_title_width(self):
        browser = Browser("/logs")
        browser.resize(100, 30)
        assert browser.max_title_chars == 83
        assert not browser.compact
        browser.resize(40, 30)
        assert browser.max_title_chars == 20
        assert browser.compact
