"""Data model for Claude Code session logs and the browser listing."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .title import truncate_title


def parse_timestamp(value):
    """Parse an ISO-8601 timestamp into an aware datetime, or None."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def _as_str(value):
    return value if isinstance(value, str) else ""


@dataclass(frozen=True)
class Message:
    """One decoded line of a session log."""
    type: str
    timestamp: Optional[datetime]
    payload: Any
    is_meta: bool = False
    uuid: str = ""
    session_id: str = ""
    cwd: str = ""
    tool_use_result: Any = None
    parent_uuid: Optional[str] = None
    is_sidechain: bool = False
    user_type: str = ""
    version: str = ""
    request_id: str = ""
    summary: str = ""

    @classmethod
    def from_record(cls, record):
        """Build a Message from a decoded JSON object."""
        parent = record.get("parentUuid")
        return cls(
            type=_as_str(record.get("type")),
            timestamp=parse_timestamp(record.get("timestamp")),
            payload=record.get("message"),
            is_meta=record.get("isMeta") is True,
            uuid=_as_str(record.get("uuid")),
            session_id=_as_str(record.get("sessionId")),
            cwd=_as_str(record.get("cwd")),
            tool_use_result=record.get("toolUseResult"),
            parent_uuid=parent if isinstance(parent, str) else None,
            is_sidechain=record.get("isSidechain") is True,
            user_type=_as_str(record.get("userType")),
            version=_as_str(record.get("version")),
            request_id=_as_str(record.get("requestId")),
            summary=_as_str(record.get("summary")),
        )


@dataclass
class ConversationLog:
    file_path: str
    messages: list = field(default_factory=list)


class ContentKind(Enum):
    """Classification attached to extracted message text."""
    NORMAL = "normal"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    EMPTY = "empty"
    COMMAND_EXEC = "command_exec"
    COMMAND_OUTPUT = "command_output"
    FILE_OP = "file_op"


@dataclass(frozen=True)
class ExtractedContent:
    text: str
    kind: ContentKind
    tool_names: tuple = ()
    tool_result_ids: tuple = ()

    @property
    def has_tool_blocks(self):
        return bool(self.tool_names or self.tool_result_ids)


PARENT_ENTRY_NAME = ".."


@dataclass(frozen=True)
class LogEntry:
    """A file or directory shown in the browser list."""
    path: str
    name: str
    is_dir: bool
    mod_time: float = 0.0
    size: int = 0
    title: str = ""
    project: str = ""

    @property
    def is_parent(self):
        return self.name == PARENT_ENTRY_NAME

    @property
    def is_log(self):
        return not self.is_dir and self.name.lower().endswith(".jsonl")

    def label(self, max_title_chars=0):
        """List row text: ``date [project] title`` for logs, ``name/`` for directories."""
        if self.is_dir:
            return self.name + "/"
        if not self.is_log:
            return self.name

        date_str = datetime.fromtimestamp(self.mod_time).strftime("%Y-%m-%d %H:%M")
        parts = [date_str]
        if self.project:
            parts.append(f"[{self.project}]")
        title = self.title
        if title and max_title_chars > 0:
            title = truncate_title(title, max_title_chars)
        if title:
            parts.append(title)
        elif not self.project:
            parts.append(os.path.splitext(self.name)[0])
        return " ".join(parts)
