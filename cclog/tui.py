"""TUI application for browsing Claude Code session logs."""

import logging
import os
from contextlib import ExitStack, contextmanager

from rich.text import Text
from textual import events, work
from textual.app import App, ComposeResult, SuspendNotSupported
from textual.binding import Binding
from textual.message import Message
from textual.widgets import Footer, Label, Static

from .browser import Browser, Intent, scan_directory
from .preview import PreviewController
from .process import Outcome, ProcessBridge

logger = logging.getLogger(__name__)

PRIMARY_ACTIONS = ("editor", "select")
SPLIT_STEP = 0.1


class EntriesLoaded(Message):
    """A directory scan finished."""

    def __init__(self, generation, directory, entries):
        super().__init__()
        self.generation = generation
        self.directory = directory
        self.entries = entries


class ProcessFinished(Message):
    """An external program launched off the event loop has exited."""

    def __init__(self, outcome):
        super().__init__()
        self.outcome = outcome


class LogBrowserApp(App[str]):
    """Browse session logs, preview them and hand them to other programs."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #title {
        height: 1;
        width: 100%;
        background: $primary;
        color: $text;
    }

    #entries {
        width: 100%;
        overflow: hidden;
    }

    #divider {
        height: 1;
        width: 100%;
        color: $text-muted;
    }

    #preview {
        width: 100%;
        border: round $primary;
        padding: 0 1;
        overflow: hidden;
    }

    #status {
        height: 1;
        width: 100%;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("escape", "quit", "Quit", show=False),
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("down", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("up", "cursor_up", "Up", show=False),
        Binding("pagedown", "page_down", "Page down", show=False),
        Binding("pageup", "page_up", "Page up", show=False),
        Binding("home", "first", "First", show=False),
        Binding("end", "last", "Last", show=False),
        Binding("enter", "enter", "Open"),
        Binding("space", "select", "Select"),
        Binding("s", "toggle_filter", "Filter"),
        Binding("p", "toggle_preview", "Preview"),
        Binding("J", "preview_down", "Scroll preview", show=False),
        Binding("K", "preview_up", "Scroll preview", show=False),
        Binding("ctrl+d", "preview_page_down", "Preview page down", show=False),
        Binding("ctrl+u", "preview_page_up", "Preview page up", show=False),
        Binding("g", "preview_top", "Preview top", show=False),
        Binding("G", "preview_bottom", "Preview bottom", show=False),
        Binding("plus", "split_grow", "Grow preview", show=False),
        Binding("minus", "split_shrink", "Shrink preview", show=False),
        Binding("e", "edit", "Edit", show=False),
        Binding("c", "copy_session_id", "Copy ID"),
        Binding("r", "resume", "Resume"),
        Binding("R", "resume_dangerous", "Resume (skip perms)", show=False),
        Binding("t", "toggle_recursive", "Recursive", show=False),
    ]

    def __init__(self, directory, recursive=False, primary_action="editor",
                 resume_change_directory=True, bridge=None, preview=None):
        super().__init__()
        if primary_action not in PRIMARY_ACTIONS:
            raise ValueError(f"unknown primary action: {primary_action}")
        self.preview = preview or PreviewController()
        self.browser = Browser(directory, recursive=recursive, preview=self.preview)
        self.bridge = bridge or ProcessBridge(handoff=self._handoff)
        self.primary_action = primary_action
        self.resume_change_directory = resume_change_directory
        self.status_message = ""
        self._generation = 0
        self._mounted = False

    def compose(self) -> ComposeResult:
        yield Label(id="title")
        yield Static(id="entries")
        yield Label(id="divider")
        yield Static(id="preview")
        yield Label(id="status")
        yield Footer()

    def on_mount(self) -> None:
        self._mounted = True
        self._apply_layout(self.size.width, self.size.height)
        self._start_load()

    def on_unmount(self) -> None:
        self.preview.dispose()

    def on_resize(self, event: events.Resize) -> None:
        self._apply_layout(event.size.width, event.size.height)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _start_load(self):
        self._generation += 1
        self.browser.begin_load()
        self._set_status("Loading...")
        self._refresh_view()
        self._scan(self._generation, self.browser.current_directory, self.browser.recursive)

    @work(thread=True, group="scan")
    def _scan(self, generation, directory, recursive):
        entries = scan_directory(directory, recursive)
        self.post_message(EntriesLoaded(generation, directory, entries))

    def on_entries_loaded(self, message: EntriesLoaded) -> None:
        if message.generation != self._generation:
            logger.debug("dropping stale scan of %s", message.directory)
            return
        self.browser.finish_load(message.entries)
        self._set_status(f"{len(message.entries)} entries")
        self._highlight_changed()

    def on_process_finished(self, message: ProcessFinished) -> None:
        self.browser.end_dispatch()
        self._report(message.outcome)

    # ------------------------------------------------------------------
    # Terminal hand-off
    # ------------------------------------------------------------------

    @contextmanager
    def _handoff(self):
        with ExitStack() as stack:
            try:
                stack.enter_context(self.suspend())
            except SuspendNotSupported:
                logger.debug("terminal hand-off not supported, running in place")
            yield
        self.refresh()

    # ------------------------------------------------------------------
    # Navigation actions
    # ------------------------------------------------------------------

    def action_cursor_down(self) -> None:
        self._move(1)

    def action_cursor_up(self) -> None:
        self._move(-1)

    def action_page_down(self) -> None:
        self.browser.page(1)
        self._highlight_changed()

    def action_page_up(self) -> None:
        self.browser.page(-1)
        self._highlight_changed()

    def action_first(self) -> None:
        self.browser.goto_first()
        self._highlight_changed()

    def action_last(self) -> None:
        self.browser.goto_last()
        self._highlight_changed()

    def _move(self, delta):
        before = self.browser.cursor
        self.browser.navigate(delta)
        if self.browser.cursor != before:
            self._highlight_changed()
        else:
            self._refresh_view()

    def action_enter(self) -> None:
        intent = self.browser.enter()
        if intent is Intent.LOAD:
            self._start_load()
        elif intent is Intent.OPEN:
            if self.primary_action == "select":
                self.action_select()
            else:
                self.action_edit()

    def action_select(self) -> None:
        path = self.browser.select()
        if path is not None:
            self.exit(path)

    async def action_quit(self) -> None:
        self.exit(None)

    def action_toggle_recursive(self) -> None:
        self.browser.toggle_recursive()
        self._start_load()

    # ------------------------------------------------------------------
    # Preview actions
    # ------------------------------------------------------------------

    def action_toggle_filter(self) -> None:
        enabled = self.preview.toggle_filter()
        self._set_status("Filter on" if enabled else "Filter off (showing all messages)")
        self._refresh_view()

    def action_toggle_preview(self) -> None:
        visible = self.preview.toggle_visible()
        self._apply_layout(self.size.width, self.size.height)
        if visible:
            self._highlight_changed()
        else:
            self.preview.clear()
            self._refresh_view()

    def action_preview_down(self) -> None:
        self._scroll_preview(self.preview.scroll, 1)

    def action_preview_up(self) -> None:
        self._scroll_preview(self.preview.scroll, -1)

    def action_preview_page_down(self) -> None:
        self._scroll_preview(self.preview.page, 1)

    def action_preview_page_up(self) -> None:
        self._scroll_preview(self.preview.page, -1)

    def action_preview_top(self) -> None:
        self.preview.goto_top()
        self._refresh_view()

    def action_preview_bottom(self) -> None:
        self.preview.goto_bottom()
        self._refresh_view()

    def _scroll_preview(self, method, amount):
        method(amount)
        self._refresh_view()

    def action_split_grow(self) -> None:
        self.preview.adjust_split(SPLIT_STEP)
        self._apply_layout(self.size.width, self.size.height)

    def action_split_shrink(self) -> None:
        self.preview.adjust_split(-SPLIT_STEP)
        self._apply_layout(self.size.width, self.size.height)

    # ------------------------------------------------------------------
    # Process actions
    # ------------------------------------------------------------------

    def _current_file(self):
        entry = self.browser.current_entry
        if entry is None or entry.is_dir:
            self._set_status("Select a file first")
            return None
        return entry.path

    def action_edit(self) -> None:
        path = self._current_file()
        if path is None:
            return
        self.browser.begin_dispatch()
        if self.bridge.uses_detached_editor():
            self._set_status(f"Waiting for editor: {os.path.basename(path)}")
            self._edit_detached(path)
            return
        outcome = self.bridge.open_in_editor(path)
        self.browser.end_dispatch()
        self._report(outcome)

    @work(thread=True, group="editor")
    def _edit_detached(self, path):
        self.post_message(ProcessFinished(self.bridge.open_in_editor(path)))

    def action_copy_session_id(self) -> None:
        path = self._current_file()
        if path is None:
            return
        self._report(self.bridge.copy_session_id(path))

    def action_resume(self) -> None:
        self._resume(dangerous=False)

    def action_resume_dangerous(self) -> None:
        self._resume(dangerous=True)

    def _resume(self, dangerous):
        path = self._current_file()
        if path is None:
            return
        self.browser.begin_dispatch()
        outcome = self.bridge.resume(path, dangerous=dangerous,
                                     change_directory=self.resume_change_directory)
        self.browser.end_dispatch()
        self._report(outcome)

    def _report(self, outcome: Outcome):
        if outcome.success:
            logger.info(outcome.message)
        else:
            logger.warning(outcome.message)
            self.notify(outcome.message, severity="error", timeout=5)
        self._set_status(outcome.message)
        self._refresh_view()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _highlight_changed(self):
        if self.preview.visible:
            entry = self.browser.current_entry
            path = entry.path if entry is not None and entry.is_log else None
            self.preview.regenerate(path)
        self._refresh_view()

    def _apply_layout(self, width, height):
        self.browser.resize(width, height)
        if not self._mounted:
            return
        self.query_one("#entries", Static).styles.height = self.browser.max_visible_rows
        preview = self.query_one("#preview", Static)
        preview.display = self.preview.visible
        preview.styles.height = self.preview.visible_height + 2
        self.query_one("#divider", Label).display = self.preview.visible
        self._refresh_view()

    def _set_status(self, message):
        self.status_message = message

    def _refresh_view(self):
        if not self._mounted:
            return
        self.query_one("#title", Label).update(self._render_title())
        self.query_one("#entries", Static).update(self._render_entries())
        self.query_one("#divider", Label).update(self._render_divider())
        self.query_one("#preview", Static).update(self._render_preview())
        self.query_one("#status", Label).update(Text(self.status_message, style="dim"))

    def _render_title(self):
        title = Text(no_wrap=True, overflow="ellipsis")
        title.append(f" {self.browser.current_directory}")
        if self.browser.recursive:
            title.append(" [RECURSIVE]", style="bold")
        if self.browser.entries:
            title.append(f"  ({self.browser.cursor + 1}/{len(self.browser.entries)})")
        return title

    def _render_entries(self):
        text = Text(no_wrap=True, overflow="ellipsis")
        rows = self.browser.visible_entries()
        if not rows:
            text.append("  (no entries)", style="dim")
            return text
        for n, (index, entry) in enumerate(rows):
            if n:
                text.append("\n")
            label = entry.label(self.browser.max_title_chars)
            if index == self.browser.cursor:
                text.append(f"> {label}", style="bold reverse")
            elif entry.is_dir:
                text.append(f"  {label}", style="bold blue")
            else:
                text.append(f"  {label}")
        return text

    def _render_divider(self):
        divider = Text(no_wrap=True, overflow="ellipsis")
        source = self.preview.source_path
        divider.append(f" Preview: {os.path.basename(source) if source else '-'} ")
        if self.preview.filter_enabled:
            divider.append("[FILTERED]", style="green")
        else:
            divider.append("[UNFILTERED]", style="yellow")
        if self.preview.total_lines:
            end = min(self.preview.total_lines, self.preview.viewport_offset + self.preview.visible_height)
            divider.append(f"  lines {self.preview.viewport_offset + 1}-{end}/{self.preview.total_lines}")
        return divider

    def _render_preview(self):
        lines = self.preview.visible_lines()
        if not lines:
            return Text("No preview available", style="dim")
        return Text("\n".join(lines), no_wrap=True, overflow="ellipsis")


def run_browser(directory, recursive=False, primary_action="editor", resume_change_directory=True):
    """Run the browser and return the selected path, or None when cancelled."""
    app = LogBrowserApp(directory, recursive=recursive, primary_action=primary_action,
                        resume_change_directory=resume_change_directory)
    try:
        return app.run()
    finally:
        app.preview.dispose()
