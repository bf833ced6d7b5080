from __future__ import annotations

import html
import logging
import re
from typing import Callable, Hashable, Iterable, List, TypeVar

from bs4 import BeautifulSoup


logger = logging.getLogger(__name__)

T = TypeVar("T")

SUMMARY_MAX_CHARS = 500
ELLIPSIS = "..."

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def clean_html_content(content_html: str, max_chars: int = SUMMARY_MAX_CHARS) -> str:
    """Turn a feed entry's HTML snippet into a single line of plain text.

    Tags are dropped (scripts and styles with their content), entities are
    decoded, whitespace is collapsed, and the result is capped at ``max_chars``
    with ``...`` appended when something was cut.
    """
    if not content_html:
        return ""
    soup = BeautifulSoup(content_html, "html.parser")
    for tag in soup.find_all(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text(" ")
    # Feeds sometimes double-escape entities inside CDATA
    text = html.unescape(text)
    text = _WHITESPACE.sub(" ", text).strip()
    if len(text) > max_chars:
        text = text[:max_chars] + ELLIPSIS
    return text


def flatten_newlines(text: str) -> str:
    return text.replace("\r", " ").replace("\n", " ").strip()


def normalize_title_for_dedup(title: str) -> str:
    # "GPT-5 Launches!" and "gpt 5 launches" must share a key
    key = _NON_WORD.sub(" ", (title or "").lower())
    return _WHITESPACE.sub(" ", key).strip()


def unique_by(items: Iterable[T], key: Callable[[T], Hashable]) -> List[T]:
    """Keep the first item for every key, preserving order."""
    seen = set()
    out: List[T] = []
    for item in items:
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        out.append(item)
    return out


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max(max_length - len(ELLIPSIS), 0)] + ELLIPSIS


def word_count(text: str) -> int:
    return len(text.split())
