import json
import os

import pytest


def user(text, **extra):
    record = {"type": "user", "timestamp": "2025-01-02T03:04:05Z", "message": {"role": "user", "content": text}}
    record.update(extra)
    return record


def assistant(content, **extra):
    record = {"type": "assistant", "timestamp": "2025-01-02T03:04:06Z",
              "message": {"role": "assistant", "content": content}}
    record.update(extra)
    return record


@pytest.fixture
def write_jsonl(tmp_path):
    """Write records (dicts or raw strings) as a JSONL file and return its path."""

    def _write(name, records, directory=None, mtime=None):
        base = directory or tmp_path
        path = os.path.join(str(base), name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            for record in records:
                f.write(record if isinstance(record, str) else json.dumps(record))
                f.write("\n")
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _write
