from cclog.models import ConversationLog, Message
from cclog.title import DEFAULT_TITLE, EMPTY_TITLE, extract_title, truncate_title

from conftest import assistant, user


def log_of(*records):
    return ConversationLog("x.jsonl", [Message.from_record(r) for r in records])


class TestExtractTitle:
    def test_empty_log(self):
        assert extract_title(log_of()) == EMPTY_TITLE
        assert extract_title(None) == EMPTY_TITLE

    def test_summary_wins(self):
        log = log_of(user("question"), {"type": "summary", "summary": "Fix the\nparser"})
        assert extract_title(log) == "Fix the parser"

    def test_first_non_meta_user(self):
        log = log_of(user("setup", isMeta=True), assistant("hi"),
                     user([{"type": "text", "text": "real\nquestion"}]))
        assert extract_title(log) == "real question"

    def test_default(self):
        assert extract_title(log_of(assistant("only the assistant"))) == DEFAULT_TITLE


class TestTruncateTitle:
    def test_short_titles_untouched(self):
        assert truncate_title("short") == "short"

    def test_long_titles_keep_width(self):
        title = truncate_title("a" * 50, 20)
        assert len(title) == 20
        assert title.endswith("...")

    def test_degenerate_widths(self):
        assert truncate_title("abcdef", 0) == ""
        assert truncate_title("abcdef", 2) == "ab"
        assert truncate_title("", 10) == ""
