"""Conversation titles for list rows and ``--show-title`` headers."""

MAX_TITLE_LENGTH = 20
ELLIPSIS = "..."
EMPTY_TITLE = "(empty)"
DEFAULT_TITLE = "Claude Conversation"


def _single_line(text):
    return text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def _summary_text(payload):
    if isinstance(payload, dict):
        summary = payload.get("summary")
        if isinstance(summary, str):
            return summary
    return ""


def title_from_blocks(blocks):
    """First non-empty text block, or a string tool_result body."""
    for block in blocks:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text":
            text = block.get("text")
            if isinstance(text, str) and text:
                return text
        elif block_type == "tool_result":
            content = block.get("content")
            if isinstance(content, str) and content:
                return content
    return ""


def title_from_payload(payload):
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, dict):
        return ""
    content = payload.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return title_from_blocks(content)
    return ""


def extract_title(log):
    """Pick a title: the first summary, else the first non-meta user message."""
    if log is None or not log.messages:
        return EMPTY_TITLE

    for message in log.messages:
        if message.type == "summary":
            # summary records keep their text at the top level, not under "message"
            title = message.summary or _summary_text(message.payload)
            if title:
                return _single_line(title)

    for message in log.messages:
        if message.type == "user" and not message.is_meta:
            title = title_from_payload(message.payload)
            if title:
                return _single_line(title)

    return DEFAULT_TITLE


def truncate_title(title, width=MAX_TITLE_LENGTH):
    """Cut ``title`` to ``width`` characters, ending with an ellipsis when cut."""
    if not title or width <= 0:
        return ""
    title = title.strip()
    if len(title) <= width:
        return title
    if width <= len(ELLIPSIS):
        return title[:width]
    return title[:width - len(ELLIPSIS)] + ELLIPSIS
