"""Directory listing and navigation state for the session browser."""

import logging
import os
from enum import Enum

from .content import extract
from .filtering import NOISE_MARKERS
from .models import PARENT_ENTRY_NAME, LogEntry
from .parser import iter_records

logger = logging.getLogger(__name__)

ANNOTATION_RECORD_LIMIT = 200
DEFAULT_VISIBLE_ROWS = 20
MIN_VISIBLE_ROWS = 2
LIST_ONLY_CHROME = 3
MIN_TITLE_CHARS = 20
COMPACT_WIDTH = 60


class BrowserPhase(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    NAVIGATING = "navigating"
    PREVIEWING = "previewing"
    DISPATCHING = "dispatching"
    TERMINATED = "terminated"


class Intent(Enum):
    """What the event loop should do after ``enter`` / ``toggle_recursive``."""
    NONE = "none"
    LOAD = "load"
    OPEN = "open"


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

def project_name(cwd):
    """Last path element of a working directory."""
    if not cwd:
        return ""
    name = os.path.basename(os.path.normpath(cwd))
    if name in ("", ".", "/", os.sep):
        return ""
    return name


def _title_candidate(record):
    payload = record.get("message")
    text = extract(payload).text.strip()
    if not text or any(marker in text for marker in NOISE_MARKERS):
        return ""
    return " ".join(text.split())


def annotate(path, limit=ANNOTATION_RECORD_LIMIT):
    """Read the head of a log and return ``(title, project)``.

    Leading summary records are skipped.  The project comes from the first
    ``cwd`` seen, the title from the first non-meta user/assistant message
    with real text.  Anything unreadable gives empty strings.
    """
    title = ""
    project = ""
    for record in iter_records(path, limit=limit):
        record_type = record.get("type")
        if record_type == "summary":
            continue
        if not project:
            cwd = record.get("cwd")
            if isinstance(cwd, str):
                project = project_name(cwd)
        if not title and record_type in ("user", "assistant") and record.get("isMeta") is not True:
            title = _title_candidate(record)
        if title and project:
            break
    return title, project


def _file_entry(path, name, stat_result):
    title = project = ""
    if name.lower().endswith(".jsonl"):
        title, project = annotate(path)
    return LogEntry(
        path=path,
        name=name,
        is_dir=False,
        mod_time=stat_result.st_mtime,
        size=stat_result.st_size,
        title=title,
        project=project,
    )


def _parent_entry(directory):
    absolute = os.path.abspath(directory)
    parent = os.path.dirname(absolute)
    if parent == absolute:
        return None
    try:
        mod_time = os.stat(parent).st_mtime
    except OSError:
        mod_time = 0.0
    return LogEntry(path=parent, name=PARENT_ENTRY_NAME, is_dir=True, mod_time=mod_time)


def _newest_first(entries):
    return sorted(entries, key=lambda entry: entry.mod_time, reverse=True)


def list_directory(directory):
    """Immediate children plus a ``..`` entry, parent first then newest first."""
    entries = []
    with os.scandir(directory) as it:
        for dir_entry in it:
            try:
                stat_result = dir_entry.stat()
                is_dir = dir_entry.is_dir()
            except OSError:
                continue
            path = os.path.join(directory, dir_entry.name)
            if is_dir:
                entries.append(LogEntry(path=path, name=dir_entry.name, is_dir=True,
                                        mod_time=stat_result.st_mtime))
            else:
                entries.append(_file_entry(path, dir_entry.name, stat_result))

    entries = _newest_first(entries)
    parent = _parent_entry(directory)
    if parent is not None:
        entries.insert(0, parent)
    return entries


def list_directory_recursive(root):
    """Every ``*.jsonl`` file below ``root``, newest first."""
    entries = []

    def on_error(error):
        raise error

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        dirnames.sort()
        for filename in sorted(filenames):
            if not filename.lower().endswith(".jsonl"):
                continue
            path = os.path.join(dirpath, filename)
            try:
                stat_result = os.stat(path)
            except OSError:
                continue
            entries.append(_file_entry(path, filename, stat_result))
    return _newest_first(entries)


def scan_directory(directory, recursive=False):
    """List ``directory``; errors give an empty list instead of propagating."""
    try:
        if recursive:
            return list_directory_recursive(directory)
        return list_directory(directory)
    except OSError as e:
        logger.warning("could not scan %s: %s", directory, e)
        return []


# ---------------------------------------------------------------------------
# Browser state
# ---------------------------------------------------------------------------

class Browser:
    """Cursor, scroll window and listing of the current directory.

    Only the event loop touches this object.  Scans may run elsewhere, but
    their result is applied through ``finish_load`` in one step.
    """

    def __init__(self, directory, recursive=False, preview=None, scanner=scan_directory):
        self.current_directory = directory
        self.recursive = recursive
        self.preview = preview
        self.entries = []
        self.cursor = 0
        self.scroll_offset = 0
        self.max_visible_rows = DEFAULT_VISIBLE_ROWS
        self.max_title_chars = MIN_TITLE_CHARS
        self.compact = False
        self.phase = BrowserPhase.IDLE
        self.selected = None
        self._scanner = scanner

    # -- loading ------------------------------------------------------------

    def begin_load(self, directory=None):
        if directory is not None:
            self.current_directory = directory
        self.phase = BrowserPhase.LOADING

    def finish_load(self, entries):
        self.entries = list(entries)
        if self.cursor >= len(self.entries):
            self.cursor = 0
        self.scroll_offset = 0
        self._follow_cursor()
        self.phase = BrowserPhase.READY

    def load(self, directory=None, recursive=None):
        if recursive is not None:
            self.recursive = recursive
        self.begin_load(directory)
        self.finish_load(self._scanner(self.current_directory, self.recursive))

    # -- navigation ---------------------------------------------------------

    @property
    def current_entry(self):
        if not self.entries:
            return None
        return self.entries[self.cursor]

    def navigate(self, delta):
        if not self.entries:
            self.cursor = 0
            self.scroll_offset = 0
            return
        self.phase = BrowserPhase.NAVIGATING
        self.cursor = min(len(self.entries) - 1, max(0, self.cursor + delta))
        self._follow_cursor()
        self.phase = BrowserPhase.READY

    def page(self, direction):
        self.navigate(direction * self.max_visible_rows)

    def goto_first(self):
        self.navigate(-len(self.entries))

    def goto_last(self):
        self.navigate(len(self.entries))

    def _follow_cursor(self):
        rows = max(1, self.max_visible_rows)
        if self.cursor < self.scroll_offset:
            self.scroll_offset = self.cursor
        elif self.cursor >= self.scroll_offset + rows:
            self.scroll_offset = self.cursor - rows + 1
        self.scroll_offset = max(0, min(self.scroll_offset, max(0, len(self.entries) - rows)))

    def visible_entries(self):
        """``(index, entry)`` pairs inside the scroll window."""
        end = self.scroll_offset + self.max_visible_rows
        return list(enumerate(self.entries))[self.scroll_offset:end]

    # -- actions ------------------------------------------------------------

    def enter(self):
        entry = self.current_entry
        if entry is None:
            return Intent.NONE
        if entry.is_dir:
            self.current_directory = entry.path
            self.cursor = 0
            self.scroll_offset = 0
            return Intent.LOAD
        return Intent.OPEN

    def select(self):
        entry = self.current_entry
        if entry is None or entry.is_dir:
            return None
        self.selected = entry.path
        self.phase = BrowserPhase.TERMINATED
        return entry.path

    def toggle_recursive(self):
        self.recursive = not self.recursive
        self.cursor = 0
        self.scroll_offset = 0
        return Intent.LOAD

    def begin_dispatch(self):
        self.phase = BrowserPhase.DISPATCHING

    def end_dispatch(self):
        if self.phase is BrowserPhase.DISPATCHING:
            self.phase = BrowserPhase.READY

    # -- layout -------------------------------------------------------------

    def resize(self, width, height):
        if self.preview is not None and self.preview.visible:
            rows = self.preview.layout(width, height)
        else:
            rows = height - LIST_ONLY_CHROME
        self.max_visible_rows = max(MIN_VISIBLE_ROWS, rows)
        self._update_display_settings(width)
        self._follow_cursor()

    def _update_display_settings(self, width):
        self.compact = width < COMPACT_WIDTH
        chars = width - 22
        if width > 80:
            chars += (width - 80) // 4
        self.max_title_chars = max(MIN_TITLE_CHARS, chars)
