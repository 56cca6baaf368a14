"""Read Claude Code JSONL session logs."""

import glob
import json
import logging
import os

from .models import ConversationLog, Message

logger = logging.getLogger(__name__)


class LogParseError(Exception):
    """A log file could not be read or a line could not be decoded."""


def parse_jsonl_file(input_path):
    """Parse every record of a JSONL file. Blank lines are skipped; anything else undecodable is fatal."""
    messages = []
    try:
        with open(input_path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as e:
                    raise LogParseError(f"failed to decode line {line_number} in {input_path}: {e}") from e
                if not isinstance(data, dict):
                    raise LogParseError(f"line {line_number} in {input_path} is not a JSON object")
                messages.append(Message.from_record(data))
    except (OSError, UnicodeDecodeError) as e:
        raise LogParseError(f"failed to read {input_path}: {e}") from e

    logger.debug("parsed %d records from %s", len(messages), input_path)
    return ConversationLog(file_path=input_path, messages=messages)


def parse_jsonl_directory(dir_path):
    """Parse every ``*.jsonl`` file directly inside ``dir_path``, sorted by name."""
    if not os.path.isdir(dir_path):
        raise LogParseError(f"not a directory: {dir_path}")
    paths = sorted(glob.glob(os.path.join(glob.escape(dir_path), "*.jsonl")))
    return [parse_jsonl_file(path) for path in paths]


def iter_records(input_path, limit=None):
    """Yield decoded records, skipping lines that do not decode to an object.

    Used where a best-effort read is enough (list annotation, resume
    directory lookup).  An unreadable file yields nothing.
    """
    count = 0
    try:
        with open(input_path, "r", encoding="utf-8") as f:
            for line in f:
                if limit is not None and count >= limit:
                    return
                line = line.strip()
                if not line:
                    continue
                count += 1
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if isinstance(data, dict):
                    yield data
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("skipping unreadable log %s: %s", input_path, e)
