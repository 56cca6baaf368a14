"""Live preview of the highlighted session log.

The controller owns everything about the preview pane: the rendered
Markdown, the scroll position inside it, the split between list and
preview, and the temporary file the current rendering is materialized to.
At most one such file exists at a time; it is removed before the next one
is created and when the controller is disposed.
"""

import logging
import os
import tempfile

from .markdown import render_file

logger = logging.getLogger(__name__)

FIXED_CHROME = 6
MIN_PREVIEW_HEIGHT = 10
MIN_LIST_HEIGHT = 2
HORIZONTAL_PADDING = 4

DEFAULT_SPLIT_RATIO = 0.8
MIN_SPLIT_RATIO = 0.2
MAX_SPLIT_RATIO = 0.8

SMALL_TERMINAL_HEIGHT = 20
SMALL_TERMINAL_RATIO = 0.6
TINY_TERMINAL_HEIGHT = 16
TINY_TERMINAL_RATIO = 0.5

ARTIFACT_PREFIX = "cclog_preview_"
ENCODING_ERRORS = "replace"


def effective_split_ratio(terminal_height, split_ratio):
    """Shrink the preview share on short terminals so the list stays usable."""
    if terminal_height < TINY_TERMINAL_HEIGHT:
        return min(split_ratio, TINY_TERMINAL_RATIO)
    if terminal_height < SMALL_TERMINAL_HEIGHT:
        return min(split_ratio, SMALL_TERMINAL_RATIO)
    return split_ratio


def calculate_preview_height(terminal_height, split_ratio, min_height=MIN_PREVIEW_HEIGHT):
    """Return ``(preview_height, list_height)`` for a terminal of the given height."""
    available = max(0, terminal_height - FIXED_CHROME)
    ratio = effective_split_ratio(terminal_height, split_ratio)
    preview_height = max(min_height, int(available * ratio))
    if available - preview_height < MIN_LIST_HEIGHT:
        preview_height = max(0, available - MIN_LIST_HEIGHT)
    return preview_height, available - preview_height


def clamp_split_ratio(ratio):
    return round(min(MAX_SPLIT_RATIO, max(MIN_SPLIT_RATIO, ratio)), 2)


class PreviewController:
    def __init__(self, renderer=render_file, temp_dir=None, split_ratio=DEFAULT_SPLIT_RATIO):
        self._renderer = renderer
        self._temp_dir = temp_dir
        self.source_path = None
        self.rendered_text = ""
        self.filter_enabled = True
        self.viewport_offset = 0
        self.split_ratio = clamp_split_ratio(split_ratio)
        self.visible = True
        self.width = 0
        self.visible_height = 0
        self.artifact_path = None
        self._lines = []

    # -- content ------------------------------------------------------------

    def regenerate(self, path, filter_enabled=None):
        """Re-render ``path`` and replace the preview artifact.

        Directories, ``None`` and render failures leave an empty preview.
        """
        if filter_enabled is not None:
            self.filter_enabled = filter_enabled
        self.source_path = path
        self._remove_artifact()
        self._set_text("")

        if not path or not os.path.isfile(path):
            return

        try:
            text = self._renderer(path, filter_enabled=self.filter_enabled)
        except Exception as e:
            # any failure leaves the preview empty
            logger.debug("preview render failed for %s: %s", path, e)
            return

        # lone surrogates from JSON escapes cannot be encoded
        text = text.encode("utf-8", ENCODING_ERRORS).decode("utf-8")
        self._set_text(text)
        self._write_artifact(text)

    def toggle_filter(self):
        self.filter_enabled = not self.filter_enabled
        self.regenerate(self.source_path)
        return self.filter_enabled

    def toggle_visible(self):
        self.visible = not self.visible
        return self.visible

    def clear(self):
        self.source_path = None
        self._remove_artifact()
        self._set_text("")

    def dispose(self):
        self._remove_artifact()

    def _set_text(self, text):
        self.rendered_text = text
        self._lines = text.splitlines()
        self.viewport_offset = 0

    def _write_artifact(self, text):
        path = None
        try:
            fd, path = tempfile.mkstemp(prefix=ARTIFACT_PREFIX, suffix=".md", dir=self._temp_dir)
            with os.fdopen(fd, "w", encoding="utf-8", errors=ENCODING_ERRORS) as f:
                f.write(text)
        except (OSError, UnicodeError) as e:
            logger.warning("could not write preview file: %s", e)
            if path is not None:
                self.artifact_path = path
                self._remove_artifact()
            self._set_text("")
            return
        self.artifact_path = path

    def _remove_artifact(self):
        path, self.artifact_path = self.artifact_path, None
        if path is None:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("could not remove preview file %s: %s", path, e)

    # -- viewport -----------------------------------------------------------

    @property
    def total_lines(self):
        return len(self._lines)

    @property
    def max_offset(self):
        return max(0, self.total_lines - self.visible_height)

    def scroll(self, delta):
        self.viewport_offset = min(self.max_offset, max(0, self.viewport_offset + delta))

    def page(self, direction):
        self.scroll(direction * max(1, self.visible_height // 2))

    def goto_top(self):
        self.viewport_offset = 0

    def goto_bottom(self):
        self.viewport_offset = self.max_offset

    def visible_lines(self):
        return self._lines[self.viewport_offset:self.viewport_offset + self.visible_height]

    # -- layout -------------------------------------------------------------

    def adjust_split(self, delta):
        self.split_ratio = clamp_split_ratio(self.split_ratio + delta)
        return self.split_ratio

    def layout(self, width, height):
        """Size the viewport for the terminal and return the rows left for the list."""
        self.width = max(0, width - HORIZONTAL_PADDING)
        self.visible_height, list_height = calculate_preview_height(height, self.split_ratio)
        self.viewport_offset = min(self.viewport_offset, self.max_offset)
        return list_height
