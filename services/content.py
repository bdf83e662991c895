"""
services/content.py

Text statistics for rich-text lesson and assignment content.
"""
from __future__ import annotations

import html
import math
import re

from config import WORDS_PER_MINUTE

_TAG_RE = re.compile(r"<[^>]*>")


def strip_html(content: str | None) -> str:
    if not content:
        return ""
    return html.unescape(_TAG_RE.sub("", content)).strip()


def word_count(content: str | None) -> int:
    text = strip_html(content)
    return len(text.split()) if text else 0


def reading_time_minutes(content: str | None, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    return math.ceil(word_count(content) / words_per_minute)


def content_stats(content: str | None) -> dict:
    words = word_count(content)
    return {
        "wordCount": words,
        "readingTimeMinutes": math.ceil(words / WORDS_PER_MINUTE),
        "characterCount": len(strip_html(content)),
    }
