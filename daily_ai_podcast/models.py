from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


ID_LENGTH = 16


def make_article_id(link: str, title: str, source: str) -> str:
    """Stable 16-hex-char id: sha1 of the link, or of title+source when there is no link."""
    if link and link.strip():
        basis = link
    else:
        basis = f"{title}{source}"
    return hashlib.sha1(basis.encode("utf-8")).hexdigest()[:ID_LENGTH]


@dataclass(frozen=True)
class Article:
    id: str
    source: str
    title: str
    link: str
    summary: str
    pub_date: Optional[str] = None

    @classmethod
    def create(
        cls,
        source: str,
        title: str,
        link: str,
        summary: str,
        pub_date: Optional[str] = None,
    ) -> "Article":
        return cls(
            id=make_article_id(link, title, source),
            source=source,
            title=title,
            link=link,
            summary=summary,
            pub_date=pub_date,
        )


@dataclass(frozen=True)
class SelectionResult:
    """Ordered ids picked by the ranking pass; refers to articles by id only."""

    selected_ids: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.selected_ids)


@dataclass
class PodcastRun:
    articles: List[Article]
    script: str
    audio: bytes
    duration_seconds: int
    message_id: Optional[str] = None
    artifact_paths: List[str] = field(default_factory=list)
