"""Extract display text from Claude Code message payloads.

The ``message`` field of a log record is loosely typed: its ``content`` may
be a plain string, a list of typed blocks (``text``, ``tool_use``,
``tool_result``), missing, or something unexpected.  ``extract`` never
raises; unknown shapes degrade to a generic string form.
"""

import json
import re
from dataclasses import dataclass
from typing import Any

from .models import ContentKind, ExtractedContent

CAVEAT_PREFIX = "Caveat: The messages below were generated"
SYSTEM_REMINDER_PREFIX = "<system-reminder>"
COMMAND_NAME_TAG = "command-name"
COMMAND_ARGS_TAG = "command-args"
COMMAND_STDOUT_TAG = "local-command-stdout"

FILE_OPERATIONS = ("create", "modify", "update", "delete")

EMPTY_PLACEHOLDER = "[Empty message content]"
SUCCESS_PLACEHOLDER = "[Command executed successfully (no output)]"
INTERRUPTED_PLACEHOLDER = "[Tool operation interrupted]"
COMPLETED_PLACEHOLDER = "[Tool operation completed (no output)]"
CAVEAT_PLACEHOLDER = "[Caveat: local command transcript follows]"


# ---------------------------------------------------------------------------
# content の形を判定する (tagged union)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextContent:
    value: str


@dataclass(frozen=True)
class BlockContent:
    blocks: list


@dataclass(frozen=True)
class OpaqueContent:
    value: Any


def decode_content(payload):
    """payload から content を取り出し、文字列 → ブロック列の順で解釈する。"""
    if payload is None:
        return None
    if isinstance(payload, str):
        return TextContent(payload)
    if not isinstance(payload, dict):
        return OpaqueContent(payload)

    content = payload.get("content")
    if content is None:
        return None
    if isinstance(content, str):
        return TextContent(content)
    if isinstance(content, list):
        return BlockContent(content)
    return OpaqueContent(content)


def _generic_string(value):
    """想定外の値を文字列化する。"""
    if isinstance(value, (dict, list)):
        try:
            return json.dumps(value, ensure_ascii=False, sort_keys=True)
        except (TypeError, ValueError):
            return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def extract_text_from_blocks(blocks):
    """ブロック列から text ブロックだけを改行で連結する。"""
    texts = []
    for block in blocks:
        if isinstance(block, dict) and block.get("type") == "text":
            text = block.get("text")
            if isinstance(text, str):
                texts.append(text)
    return "\n".join(texts)


def extract_tool_uses(blocks):
    """ブロック列から tool_use の名前を取り出す。"""
    names = []
    for block in blocks:
        if isinstance(block, dict) and block.get("type") == "tool_use":
            name = block.get("name")
            names.append(name if isinstance(name, str) and name else "Unknown")
    return tuple(names)


def extract_tool_results(blocks):
    """ブロック列から tool_result の tool_use_id を取り出す。"""
    ids = []
    for block in blocks:
        if isinstance(block, dict) and block.get("type") == "tool_result":
            tool_use_id = block.get("tool_use_id")
            ids.append(tool_use_id if isinstance(tool_use_id, str) else "")
    return tuple(ids)


# ---------------------------------------------------------------------------
# プレースホルダー
# ---------------------------------------------------------------------------

def _tag_value(text, tag):
    match = re.search(rf"<{tag}>(.*?)</{tag}>", text, re.DOTALL)
    if match is None:
        return None
    return match.group(1).strip()


def _tool_placeholder(tool_use_result):
    """空のツールメッセージを一行の説明に置き換える。"""
    if isinstance(tool_use_result, dict):
        operation = tool_use_result.get("type")
        file_path = tool_use_result.get("filePath")
        if operation in FILE_OPERATIONS and isinstance(file_path, str) and file_path:
            return f"[File {operation}: {file_path}]", ContentKind.FILE_OP

        interrupted = tool_use_result.get("interrupted") is True
        if "stdout" in tool_use_result and "stderr" in tool_use_result:
            if not tool_use_result.get("stdout") and not tool_use_result.get("stderr") and not interrupted:
                return SUCCESS_PLACEHOLDER, ContentKind.TOOL_RESULT
        if interrupted:
            return INTERRUPTED_PLACEHOLDER, ContentKind.TOOL_RESULT

    return COMPLETED_PLACEHOLDER, ContentKind.TOOL_RESULT


def _marker_kind(text):
    """マーカー文字列の分類。該当しなければ None。"""
    if text.lstrip().startswith(CAVEAT_PREFIX):
        return ContentKind.COMMAND_OUTPUT
    if _tag_value(text, COMMAND_NAME_TAG) is not None:
        return ContentKind.COMMAND_EXEC
    if _tag_value(text, COMMAND_STDOUT_TAG) is not None:
        return ContentKind.COMMAND_OUTPUT
    return None


def _marker_placeholder(text):
    """既知のマーカーを含む文字列を一行の説明に置き換える。該当しなければ None。"""
    stripped = text.lstrip()
    if stripped.startswith(CAVEAT_PREFIX):
        return CAVEAT_PLACEHOLDER, ContentKind.COMMAND_OUTPUT
    if stripped.startswith(SYSTEM_REMINDER_PREFIX):
        return CAVEAT_PLACEHOLDER, ContentKind.NORMAL

    command = _tag_value(text, COMMAND_NAME_TAG)
    if command is not None:
        args = _tag_value(text, COMMAND_ARGS_TAG)
        if args:
            command = f"{command} {args}"
        return f"[Command: {command}]", ContentKind.COMMAND_EXEC

    output = _tag_value(text, COMMAND_STDOUT_TAG)
    if output is not None:
        if not output:
            return "[Command output: (empty)]", ContentKind.COMMAND_OUTPUT
        first_line = output.splitlines()[0]
        return f"[Command output: {first_line}]", ContentKind.COMMAND_OUTPUT

    return None


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------

def extract(payload, placeholders=False, tool_use_result=None):
    """メッセージの payload から表示用テキストと分類を取り出す。

    ``placeholders`` は include-all 表示のときだけ使う。空になるはずの
    メッセージや既知のマーカーを一行の説明に置き換えるが、フィルタ判定には
    影響させない (フィルタは常に placeholders=False で評価する)。
    """
    decoded = decode_content(payload)

    if decoded is None:
        if placeholders:
            return ExtractedContent(EMPTY_PLACEHOLDER, ContentKind.EMPTY)
        return ExtractedContent("", ContentKind.EMPTY)

    if isinstance(decoded, TextContent):
        text = decoded.value
        if placeholders:
            if not text:
                return ExtractedContent(EMPTY_PLACEHOLDER, ContentKind.EMPTY)
            replaced = _marker_placeholder(text)
            if replaced is not None:
                return ExtractedContent(*replaced)
        if not text:
            return ExtractedContent(text, ContentKind.EMPTY)
        return ExtractedContent(text, _marker_kind(text) or ContentKind.NORMAL)

    if isinstance(decoded, OpaqueContent):
        return ExtractedContent(_generic_string(decoded.value), ContentKind.NORMAL)

    blocks = decoded.blocks
    text = extract_text_from_blocks(blocks)
    tool_names = extract_tool_uses(blocks)
    tool_result_ids = extract_tool_results(blocks)

    if text:
        if placeholders:
            replaced = _marker_placeholder(text)
            if replaced is not None:
                return ExtractedContent(replaced[0], replaced[1], tool_names, tool_result_ids)
        return ExtractedContent(text, _marker_kind(text) or ContentKind.NORMAL, tool_names, tool_result_ids)

    if tool_names:
        kind = ContentKind.TOOL_USE
    elif tool_result_ids:
        kind = ContentKind.TOOL_RESULT
    else:
        kind = ContentKind.EMPTY

    if not placeholders:
        return ExtractedContent("", kind, tool_names, tool_result_ids)

    if not tool_names and not tool_result_ids:
        return ExtractedContent(EMPTY_PLACEHOLDER, ContentKind.EMPTY)

    placeholder, placeholder_kind = _tool_placeholder(tool_use_result)
    if placeholder_kind is ContentKind.TOOL_RESULT and kind is ContentKind.TOOL_USE:
        placeholder_kind = ContentKind.TOOL_USE
    return ExtractedContent(placeholder, placeholder_kind, tool_names, tool_result_ids)


def extract_message(message, placeholders=False):
    """Message から extract する。toolUseResult を placeholder 判定に渡す。"""
    return extract(message.payload, placeholders=placeholders, tool_use_result=message.tool_use_result)
