"""
Text wrapping and geometry helpers for on-screen alerts.
"""

from __future__ import annotations

from typing import List, Optional

WRAP_WIDTH = 50
LINE_HEIGHT = 18
BASE_HEIGHT = 80
MAX_VISIBLE_LINES = 8
TOP_MARGIN = 20
STACK_GAP = 10


def wrap_text(text: str, width: int = WRAP_WIDTH) -> List[str]:
    """
    Greedily wrap ``text`` into lines of at most ``width`` characters.

    Words are separated by single spaces. A word longer than ``width`` is
    split at the width boundary. Existing newlines start a new line.
    """
    if width < 1:
        raise ValueError("width must be positive")
    if not text:
        return []
    lines: List[str] = []
    for paragraph in text.split("\n"):
        lines.extend(_wrap_paragraph(paragraph, width))
    return lines


def _wrap_paragraph(paragraph: str, width: int) -> List[str]:
    lines: List[str] = []
    current: Optional[str] = None
    for word in paragraph.split(" "):
        if current is not None and len(current) + 1 + len(word) <= width:
            current = f"{current} {word}"
            continue
        if current is not None:
            lines.append(current)
        while len(word) > width:
            lines.append(word[:width])
            word = word[width:]
        current = word
    if current is not None:
        lines.append(current)
    return lines


def alert_height(line_count: int) -> int:
    """Pixel height of an alert showing ``line_count`` wrapped lines."""
    visible = min(MAX_VISIBLE_LINES, max(1, line_count))
    return BASE_HEIGHT + visible * LINE_HEIGHT


def stack_offset(index: int, height: int) -> int:
    """Vertical offset of the alert at stacking ``index``."""
    return TOP_MARGIN + index * (height + STACK_GAP)
