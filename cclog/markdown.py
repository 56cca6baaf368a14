"""Claude Code JSONL session transcript to Markdown converter."""

import os
import re
from datetime import datetime, timezone

from .content import extract_message
from .filtering import filter_log
from .parser import parse_jsonl_file
from .title import extract_title

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(message):
    return message.timestamp or _EPOCH


def sorted_messages(messages):
    """タイムスタンプ順に並べる (安定ソート、タイムスタンプなしは先頭)。"""
    return sorted(messages, key=_sort_key)


def format_timestamp(timestamp):
    """ローカルタイムゾーンで時刻を表示する。"""
    if timestamp is None:
        return ""
    return timestamp.astimezone().strftime(TIME_FORMAT)


def _role_heading(message_type):
    if message_type == "user":
        return "User"
    if message_type == "assistant":
        return "Assistant"
    return (message_type or "unknown").title()


def format_message(message, level=2, show_uuid=False, include_all=False):
    """メッセージ1件をMarkdownに変換する。"""
    lines = [f"{'#' * level} {_role_heading(message.type)}\n"]

    time_str = format_timestamp(message.timestamp)
    if time_str:
        lines.append(f"**Time:** {time_str}\n")

    text = extract_message(message, placeholders=include_all).text
    if text:
        lines.append(f"{text}\n")

    if show_uuid and message.uuid:
        lines.append(f"*UUID: {message.uuid}*\n")

    return "\n".join(lines) + "\n"


def _message_sections(log, level, show_uuid, include_all):
    sections = []
    for message in sorted_messages(log.messages):
        if message.type == "summary":
            continue
        sections.append(format_message(message, level=level, show_uuid=show_uuid, include_all=include_all))
    return sections


def format_conversation(log, show_uuid=False, include_all=False):
    """会話ログ1件をMarkdown文字列に変換する。"""
    lines = []
    lines.append("# Conversation Log\n")
    lines.append(f"**File:** `{log.file_path}`")
    lines.append(f"**Messages:** {len(log.messages)}\n")
    header = "\n".join(lines) + "\n"
    return header + "".join(_message_sections(log, 2, show_uuid, include_all))


def toc_anchor(name):
    """目次用のアンカーを作る。"""
    anchor = name.lower().replace(".", "")
    return re.sub(r"\s+", "-", anchor)


def format_conversations(logs, show_uuid=False, include_all=False):
    """複数の会話ログを目次付きの1つのMarkdownにまとめる。"""
    lines = []
    lines.append("# Claude Conversation Logs\n")
    lines.append(f"**Total Conversations:** {len(logs)}\n")
    lines.append("## Table of Contents\n")
    for i, log in enumerate(logs, start=1):
        filename = os.path.basename(log.file_path)
        lines.append(f"{i}. [{filename}](#{toc_anchor(filename)})")
    parts = ["\n".join(lines) + "\n\n"]

    for log in logs:
        filename = os.path.basename(log.file_path)
        parts.append(f"## {filename}\n\n")
        parts.extend(_message_sections(log, 3, show_uuid, include_all))
        parts.append("---\n\n")

    return "".join(parts)


def with_title(markdown, log):
    """--show-title 用に会話タイトルを先頭に付ける。"""
    return f"# {extract_title(log)}\n\n{markdown}"


def render_file(input_path, filter_enabled=True, show_uuid=False):
    """JSONLファイルを読み込んでMarkdownに変換する。

    フィルタ無効 (include-all) のときはプレースホルダーを表示に使う。
    """
    log = filter_log(parse_jsonl_file(input_path), filter_enabled)
    return format_conversation(log, show_uuid=show_uuid, include_all=not filter_enabled)
