from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import aiohttp
import feedparser
from dateutil import parser as dateparser

from .models import Article
from .text_utils import clean_html_content


logger = logging.getLogger(__name__)

USER_AGENT = "daily-ai-podcast/0.1 (+feed reader)"

# Applied in order; each is removed once from the host name
_HOST_NOISE = (".com", ".org", ".edu", ".co.uk", "news.", "blog.", "research.")


def extract_source_name(feed_url: str) -> str:
    """Short source label from the feed host: https://news.mit.edu/... -> "mit"."""
    try:
        host = urlparse(feed_url).hostname or ""
    except ValueError:
        host = ""
    if not host:
        return "unknown-source"
    if host.startswith("www."):
        host = host[len("www."):]
    for noise in _HOST_NOISE:
        host = host.replace(noise, "", 1)
    return host or "unknown-source"


def _entry_text(entry: Any) -> str:
    summary = entry.get("summary") or ""
    if summary:
        return summary
    content = entry.get("content") or []
    if content:
        try:
            return content[0].get("value") or ""
        except (AttributeError, IndexError, TypeError):
            pass
    return entry.get("description") or ""


def normalize_entry(entry: Any, source: str) -> Article:
    title = (entry.get("title") or "").strip() or "Untitled"
    link = (entry.get("link") or "").strip()
    pub_date = entry.get("published") or entry.get("updated") or None
    return Article.create(
        source=source,
        title=title,
        link=link,
        summary=clean_html_content(_entry_text(entry)),
        pub_date=pub_date,
    )


def parse_pub_date(value: Optional[str], now: dt.datetime) -> dt.datetime:
    # Missing/garbled dates count as "now" and float to the top of the listing
    if not value:
        return now
    try:
        parsed = dateparser.parse(value)
    except (ValueError, OverflowError, TypeError):
        return now
    if parsed is None:
        return now
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def sort_newest_first(articles: Iterable[Article], now: Optional[dt.datetime] = None) -> List[Article]:
    ref = now or dt.datetime.now(dt.timezone.utc)
    return sorted(articles, key=lambda a: parse_pub_date(a.pub_date, ref), reverse=True)


async def _download(session: aiohttp.ClientSession, url: str) -> bytes:
    async with session.get(url, headers={"User-Agent": USER_AGENT}) as resp:
        resp.raise_for_status()
        return await resp.read()


async def fetch_feed(session: aiohttp.ClientSession, url: str) -> List[Article]:
    """Fetch and normalize one feed. Never raises: a broken source contributes nothing."""
    logger.info("Fetching feed", extra={"url": url})
    try:
        body = await _download(session, url)
        parsed = feedparser.parse(body)
    except Exception as e:  # noqa: BLE001
        logger.warning("Feed fetch failed", extra={"url": url, "error": str(e)})
        return []

    if parsed.bozo:
        logger.warning("Feed parse warning", extra={"url": url, "detail": str(parsed.get("bozo_exception"))})
    source = extract_source_name(url)
    articles = [normalize_entry(e, source) for e in parsed.entries]
    logger.info("Fetched feed entries", extra={"source": source, "count": len(articles)})
    return articles


async def fetch_all_feeds(
    urls: Iterable[str],
    session: Optional[aiohttp.ClientSession] = None,
) -> List[Article]:
    """Fetch every feed concurrently and merge them newest first."""
    url_list = list(urls)
    if session is None:
        async with aiohttp.ClientSession() as own_session:
            results = await asyncio.gather(*(fetch_feed(own_session, u) for u in url_list))
    else:
        results = await asyncio.gather(*(fetch_feed(session, u) for u in url_list))

    merged: List[Article] = [a for batch in results for a in batch]
    articles = sort_newest_first(merged)
    logger.info(
        "Fetched all feeds",
        extra={"feeds": len(url_list), "empty_feeds": sum(1 for r in results if not r), "articles": len(articles)},
    )
    return articles


def fetch_all_feeds_sync(urls: Iterable[str]) -> List[Article]:
    return asyncio.run(fetch_all_feeds(urls))


def count_by_source(articles: Iterable[Article]) -> Dict[str, int]:
    return dict(Counter(a.source for a in articles))
