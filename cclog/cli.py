"""Command line front end: convert session logs to Markdown or browse them."""

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from enum import Enum

from .filtering import filter_log
from .markdown import format_conversation, format_conversations, with_title
from .parser import LogParseError, parse_jsonl_directory, parse_jsonl_file

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
CLAUDE_PROJECTS_DIR = os.path.join("~", ".claude", "projects")


class Mode(Enum):
    CONVERT = "convert"
    TUI = "tui"


class Scope(Enum):
    FILE = "file"
    DIRECTORY = "directory"
    RECURSIVE = "recursive"


def derive_mode(args):
    """Decide ``(Mode, Scope)`` from the parsed flags.

    ==========================  ==========  =========
    flags                       mode        scope
    ==========================  ==========  =========
    ``--recursive``             TUI         RECURSIVE
    no input                    TUI         DIRECTORY
    ``--tui``                   TUI         DIRECTORY
    ``-d`` / input directory    CONVERT     DIRECTORY
    input file                  CONVERT     FILE
    ==========================  ==========  =========
    """
    if args.recursive:
        return Mode.TUI, Scope.RECURSIVE
    if not args.input or args.tui:
        return Mode.TUI, Scope.DIRECTORY
    if args.directory or os.path.isdir(args.input):
        return Mode.CONVERT, Scope.DIRECTORY
    return Mode.CONVERT, Scope.FILE


def _claude_projects_dir():
    path = os.path.expanduser(CLAUDE_PROJECTS_DIR)
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        logger.debug("cannot create %s: %s", path, e)
        return None
    return path


def _current_dir():
    return os.curdir


DEFAULT_DIRECTORY_RESOLVERS = (_claude_projects_dir, _current_dir)


def resolve_default_directory(resolvers=DEFAULT_DIRECTORY_RESOLVERS):
    """First directory produced by the resolvers, tried in order."""
    for resolver in resolvers:
        path = resolver()
        if path and os.path.isdir(path):
            return path
    return os.curdir


@dataclass
class Config:
    mode: Mode
    scope: Scope
    input: str = ""
    output: str = ""
    include_all: bool = False
    show_uuid: bool = False
    show_title: bool = False
    resume_change_directory: bool = True
    log_file: str = ""
    verbose: bool = False

    @classmethod
    def from_args(cls, args):
        mode, scope = derive_mode(args)
        return cls(
            mode=mode,
            scope=scope,
            input=args.input or "",
            output=args.output or "",
            include_all=args.include_all,
            show_uuid=args.show_uuid,
            show_title=args.show_title,
            resume_change_directory=not args.no_resume_cd,
            log_file=args.log_file or "",
            verbose=args.verbose,
        )


def build_parser():
    parser = argparse.ArgumentParser(
        prog="cclog",
        description="Convert Claude Code session logs (JSONL) to Markdown, or browse them interactively.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  cclog                          browse ~/.claude/projects\n"
            "  cclog -r ~/.claude/projects    browse every session below a directory\n"
            "  cclog session.jsonl            print a session as Markdown\n"
            "  cclog -d logs/ -o all.md       convert a directory into one document\n"
        ),
    )
    parser.add_argument("input", nargs="?", help="Session log file or directory")
    parser.add_argument("-d", "--directory", action="store_true",
                        help="Treat input as a directory of *.jsonl files")
    parser.add_argument("-o", "--output", help="Write Markdown to this file instead of stdout")
    parser.add_argument("--include-all", action="store_true",
                        help="Include every message, with placeholders for tool and command records")
    parser.add_argument("--show-uuid", action="store_true", help="Show message UUIDs")
    parser.add_argument("--show-title", action="store_true", help="Prefix the document with the conversation title")
    parser.add_argument("--tui", action="store_true", help="Browse the directory interactively")
    parser.add_argument("-r", "--recursive", action="store_true",
                        help="Browse every session log below the directory")
    parser.add_argument("--no-resume-cd", action="store_true",
                        help="Resume sessions in the current directory instead of the recorded one")
    parser.add_argument("--log-file", help="Write diagnostic logs to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug level logging")
    return parser


def setup_logging(log_file="", verbose=False, interactive=False):
    """Configure the ``cclog`` logger.

    While the TUI owns the terminal nothing is written to stderr; without a
    log file, interactive runs stay silent.
    """
    root = logging.getLogger("cclog")
    root.handlers.clear()
    root.propagate = False
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    elif interactive:
        handler = logging.NullHandler()
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root.addHandler(handler)
    return root


def run_command(config):
    """Convert the configured input and return the Markdown text."""
    filter_enabled = not config.include_all
    if config.scope is Scope.DIRECTORY:
        raw_logs = parse_jsonl_directory(config.input)
        logs = [filter_log(log, filter_enabled) for log in raw_logs]
        logger.info("converted %d logs from %s", len(logs), config.input)
        markdown = format_conversations(logs, show_uuid=config.show_uuid, include_all=config.include_all)
        if config.show_title and raw_logs:
            # titles come from summary records, which filtering drops
            markdown = with_title(markdown, raw_logs[0])
        return markdown

    raw_log = parse_jsonl_file(config.input)
    log = filter_log(raw_log, filter_enabled)
    markdown = format_conversation(log, show_uuid=config.show_uuid, include_all=config.include_all)
    if config.show_title:
        markdown = with_title(markdown, raw_log)
    return markdown


def write_output(markdown, output):
    if not output:
        sys.stdout.write(markdown)
        return
    parent = os.path.dirname(os.path.abspath(output))
    os.makedirs(parent, exist_ok=True)
    with open(output, "w", encoding="utf-8", errors="replace") as f:
        f.write(markdown)
    logger.info("wrote %s", output)
    print(f"Output written to: {output}")


def run_tui(config):
    # textual is only imported when the browser is used
    from .tui import run_browser

    directory = config.input or resolve_default_directory()
    selected = run_browser(
        directory,
        recursive=config.scope is Scope.RECURSIVE,
        resume_change_directory=config.resume_change_directory,
    )
    if selected:
        print(selected)


def main(argv=None):
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # -h exits 0, usage errors map to 1
        return 0 if e.code in (0, None) else 1
    config = Config.from_args(args)
    setup_logging(config.log_file, config.verbose, interactive=config.mode is Mode.TUI)

    try:
        if config.mode is Mode.TUI:
            if config.input and not os.path.isdir(config.input):
                raise NotADirectoryError(f"not a directory: {config.input}")
            run_tui(config)
        else:
            write_output(run_command(config), config.output)
    except (LogParseError, OSError, UnicodeError) as e:
        logger.debug("command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        print("Use 'cclog -h' for help.", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
