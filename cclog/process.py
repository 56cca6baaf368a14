"""Hand-off to external programs: editor, ``claude -r`` and the clipboard.

Every entry point returns an ``Outcome``; failures are reported, never
raised, so the browser loop keeps running.  Programs that need the
terminal run inside ``handoff()``, a context manager supplied by the
caller (the textual app passes ``App.suspend``).
"""

import logging
import os
import shlex
import shutil
import subprocess
import sys
import tempfile
from contextlib import nullcontext
from dataclasses import dataclass

from .markdown import render_file
from .parser import LogParseError, iter_records

logger = logging.getLogger(__name__)

FALLBACK_EDITORS = ("nano", "vim", "vi", "emacs")
DETACHED_EDITORS = ("code", "codium", "subl", "atom")
WAIT_FLAG = "--wait"

RESUME_COMMAND = "claude"
RESUME_FLAG = "-r"
SKIP_PERMISSIONS_FLAG = "--dangerously-skip-permissions"

SESSION_SUFFIX = ".jsonl"
EDITOR_TEMP_PREFIX = "cclog_"
CWD_RECORD_LIMIT = 50


class SessionIdError(ValueError):
    """The file name does not carry a session identifier."""


@dataclass(frozen=True)
class Outcome:
    success: bool
    message: str = ""


# ---------------------------------------------------------------------------
# Session identifiers and resume
# ---------------------------------------------------------------------------

def extract_session_id(file_path):
    """Session id from the file name: ``/x/abc.jsonl`` -> ``abc``.

    The ``.jsonl`` suffix is matched case-insensitively; the file itself is
    never opened.
    """
    name = os.path.basename(file_path or "")
    if not name.lower().endswith(SESSION_SUFFIX):
        raise SessionIdError(f"not a session log (expected {SESSION_SUFFIX}): {file_path!r}")
    session_id = name[:-len(SESSION_SUFFIX)]
    if not session_id:
        raise SessionIdError(f"empty session id in {file_path!r}")
    return session_id


def build_resume_command(file_path, dangerous=False):
    """Return ``(command, args)`` for resuming the session in ``file_path``."""
    args = [RESUME_FLAG, extract_session_id(file_path)]
    if dangerous:
        args.append(SKIP_PERMISSIONS_FLAG)
    return RESUME_COMMAND, args


def find_session_cwd(file_path):
    for record in iter_records(file_path, limit=CWD_RECORD_LIMIT):
        cwd = record.get("cwd")
        if isinstance(cwd, str) and cwd:
            return cwd
    return ""


def resolve_resume_directory(file_path):
    """Working directory recorded in the log, falling back to the log's own directory."""
    cwd = find_session_cwd(file_path)
    if cwd and os.path.isdir(cwd):
        return cwd
    if cwd:
        logger.info("recorded cwd %s no longer exists, using log directory", cwd)
    return os.path.dirname(os.path.abspath(file_path))


# ---------------------------------------------------------------------------
# Editor
# ---------------------------------------------------------------------------

def resolve_editor(environ=None, which=shutil.which):
    """Editor argv from ``$EDITOR``/``$VISUAL`` or the first fallback on PATH."""
    if environ is None:
        environ = os.environ
    for variable in ("EDITOR", "VISUAL"):
        value = environ.get(variable, "").strip()
        if value:
            try:
                argv = shlex.split(value)
            except ValueError:
                argv = [value]
            if argv:
                return argv
    for editor in FALLBACK_EDITORS:
        if which(editor):
            return [editor]
    return None


def is_detached_editor(argv0):
    return os.path.basename(argv0) in DETACHED_EDITORS


def convert_to_temp_markdown(jsonl_path, temp_dir=None):
    """Render a log into a temporary ``.md`` file and return its path."""
    markdown = render_file(jsonl_path, filter_enabled=True)
    fd, path = tempfile.mkstemp(prefix=EDITOR_TEMP_PREFIX, suffix=".md", dir=temp_dir)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", errors="replace") as f:
            f.write(markdown)
    except (OSError, UnicodeError):
        _remove_quietly(path)
        raise
    return path


def _remove_quietly(path):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("could not remove temporary file %s: %s", path, e)


# ---------------------------------------------------------------------------
# Clipboard
# ---------------------------------------------------------------------------

def clipboard_commands(platform=None):
    platform = platform or sys.platform
    if platform == "darwin":
        return [["pbcopy"]]
    if platform.startswith("win"):
        return [["clip"]]
    return [
        ["wl-copy"],
        ["xclip", "-selection", "clipboard"],
        ["xsel", "--clipboard", "--input"],
    ]


def copy_to_clipboard(text, run=subprocess.run):
    """Copy text with the first clipboard command that works."""
    for command in clipboard_commands():
        try:
            run(command, input=text, text=True, check=True,
                stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
            return True
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("clipboard command %s failed: %s", command[0], e)
    return False


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------

class ProcessBridge:
    def __init__(self, handoff=None, environ=None, which=shutil.which, run=subprocess.run, temp_dir=None):
        self._handoff = handoff or nullcontext
        self._environ = environ
        self._which = which
        self._run = run
        self._temp_dir = temp_dir

    def editor(self):
        return resolve_editor(self._environ, self._which)

    def uses_detached_editor(self):
        argv = self.editor()
        return bool(argv) and is_detached_editor(argv[0])

    def open_in_editor(self, file_path):
        """Open a file in the editor; session logs are converted to Markdown first."""
        argv = self.editor()
        if not argv:
            return Outcome(False, "No editor found (set $EDITOR)")

        target = file_path
        temp_path = None
        if file_path.lower().endswith(SESSION_SUFFIX):
            try:
                temp_path = convert_to_temp_markdown(file_path, self._temp_dir)
                target = temp_path
            except (LogParseError, OSError, UnicodeError) as e:
                logger.warning("conversion of %s failed, opening raw log: %s", file_path, e)

        try:
            if is_detached_editor(argv[0]):
                command = argv[:1] + [WAIT_FLAG] + argv[1:] + [target]
                return self._launch(command, foreground=False)
            return self._launch(argv + [target], foreground=True)
        finally:
            if temp_path is not None:
                _remove_quietly(temp_path)

    def copy_session_id(self, file_path):
        try:
            session_id = extract_session_id(file_path)
        except SessionIdError as e:
            return Outcome(False, str(e))
        if not copy_to_clipboard(session_id, run=self._run):
            return Outcome(False, "No clipboard command available")
        return Outcome(True, f"Copied session ID: {session_id}")

    def resume(self, file_path, dangerous=False, change_directory=False):
        try:
            command, args = build_resume_command(file_path, dangerous)
        except SessionIdError as e:
            return Outcome(False, str(e))
        cwd = resolve_resume_directory(file_path) if change_directory else None
        return self._launch([command] + args, foreground=True, cwd=cwd)

    def _launch(self, command, foreground=True, cwd=None):
        display = shlex.join(command)
        logger.info("running %s (cwd=%s)", display, cwd)
        try:
            if foreground:
                with self._handoff():
                    result = self._run(command, cwd=cwd)
            else:
                result = self._run(command, cwd=cwd,
                                   stdin=subprocess.DEVNULL,
                                   stdout=subprocess.DEVNULL,
                                   stderr=subprocess.DEVNULL)
        except FileNotFoundError:
            return Outcome(False, f"Command not found: {command[0]}")
        except (OSError, subprocess.SubprocessError) as e:
            return Outcome(False, f"Failed to run '{display}': {e}")

        if result.returncode != 0:
            return Outcome(False, f"'{display}' exited with status {result.returncode}")
        return Outcome(True, f"Finished: {display}")
