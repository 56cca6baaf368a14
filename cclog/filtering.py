"""Noise filter: decide which messages carry meaningful content."""

from .content import extract_message
from .models import ConversationLog

SKIPPED_TYPES = ("system", "summary")

NOISE_MARKERS = (
    "API Error",
    "[Request interrupted",
    "<command-name>",
    "<bash-input>",
    "<local-command-stdout>",
    "Caveat: The messages below were generated",
)


def is_contentful(message):
    """True when the message is worth showing.

    The decision always uses the placeholder-free extraction, so
    placeholders can never make a message contentful.
    """
    if message.type in SKIPPED_TYPES:
        return False
    if message.is_meta:
        return False

    text = extract_message(message, placeholders=False).text
    if not text:
        return False
    return not any(marker in text for marker in NOISE_MARKERS)


def filter_messages(messages, enabled=True):
    if not enabled:
        return list(messages)
    return [message for message in messages if is_contentful(message)]


def filter_log(log, enabled=True):
    return ConversationLog(file_path=log.file_path, messages=filter_messages(log.messages, enabled))
