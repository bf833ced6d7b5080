"""Two-pass article curation.

Pass A keeps articles that are genuinely about AI (LLM in batches, or a
keyword match when no LLM is configured). The survivors are de-duplicated by
link and by normalized title, and Pass B asks the LLM to rank them and pick
the episode's stories.
"""
from __future__ import annotations

import html
import json
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from dateutil import parser as dateparser

from .errors import ConfigurationError, CurationError, OracleError
from .llm import ChatOracle, RelevanceResponse, SelectionResponse, parse_oracle_json
from .models import Article, SelectionResult
from .text_utils import flatten_newlines, normalize_title_for_dedup, truncate_text, unique_by


logger = logging.getLogger(__name__)

BATCH_SIZE = 100
MIN_RECOMMENDED_SELECTION = 5

AI_KEYWORDS = [
    "ai", "artificial intelligence", "llm", "large language model", "model", "gpt",
    "anthropic", "openai", "deepmind", "nvidia", "transformer", "machine learning",
    "ml", "deep learning", "neural network", "chatgpt", "computer vision", "nlp",
    "natural language processing", "robotics", "automation", "algorithm", "data science",
    "tensorflow", "pytorch", "generative ai", "attention", "reinforcement learning",
    "claude", "gemini", "bard", "copilot", "midjourney", "dall-e", "stable diffusion",
]

RELEVANCE_SYSTEM_PROMPT = (
    "You are an expert AI news curator. Your job is to identify which articles are genuinely "
    "AI-related and important for an AI news podcast.\n\n"
    "FILTERING CRITERIA:\n"
    "- Include articles about artificial intelligence, machine learning, LLMs, AI research, AI companies, "
    "AI tools, AI applications\n"
    "- Include articles about major AI models (GPT, Claude, Gemini, etc.), AI frameworks, AI hardware\n"
    "- Include articles about AI ethics, AI policy, AI industry developments\n"
    "- Exclude articles that only mention AI in passing or as a minor topic\n"
    "- Exclude non-AI tech articles, general business news, or unrelated content\n"
    "- Focus on articles that would be interesting to AI practitioners and enthusiasts\n\n"
    "RETURN FORMAT:\n"
    "Return ONLY a valid JSON object with this exact structure:\n"
    '{\n  "aiRelatedIds": ["id1", "id2", "id3", ...]\n}\n\n'
    "The IDs MUST come from the provided list with no modifications."
)

RANKING_SYSTEM_PROMPT = (
    "You are an expert AI news curator. Your job is to select the most important and impactful "
    "AI-related news articles for a daily podcast.\n\n"
    "SELECTION CRITERIA:\n"
    "- Choose ONLY AI-related news (artificial intelligence, machine learning, LLMs, etc.)\n"
    "- Prefer recent and high-impact stories\n"
    "- Remove near duplicates (if multiple articles cover the same event, pick the best one)\n"
    "- Target {max_count} articles (but quality over quantity)\n"
    "- Focus on developments that matter to AI practitioners and enthusiasts\n\n"
    "RETURN FORMAT:\n"
    "Return ONLY a valid JSON object with this exact structure:\n"
    '{{\n  "selectedIds": ["id1", "id2", "id3", ...]\n}}\n\n'
    "The IDs MUST come from the provided list with no modifications."
)


def keyword_filter(articles: Iterable[Article], keywords: Sequence[str] = AI_KEYWORDS) -> List[Article]:
    out: List[Article] = []
    for a in articles:
        haystack = f"{a.title}\n{a.summary}".lower()
        if any(k in haystack for k in keywords):
            out.append(a)
    return out


def _relevance_batch(oracle: ChatOracle, batch: List[Dict[str, str]]) -> List[str]:
    user = (
        "Here are the candidate articles. Identify which ones are genuinely AI-related and important:\n\n"
        + json.dumps(batch, ensure_ascii=False, indent=2)
        + "\n\nReturn the JSON with aiRelatedIds array:"
    )
    raw = oracle.complete(RELEVANCE_SYSTEM_PROMPT, user, temperature=0.1, max_tokens=4000, json_mode=True)
    return parse_oracle_json(raw, RelevanceResponse).aiRelatedIds


def filter_ai_articles(
    articles: Sequence[Article],
    oracle: Optional[ChatOracle],
    batch_size: int = BATCH_SIZE,
) -> List[Article]:
    """Pass A. Batches go to the LLM one after another; a failed batch is skipped."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    if not articles:
        return []

    if oracle is None:
        logger.warning("No LLM configured; falling back to keyword filtering")
        kept = keyword_filter(articles)
        logger.info("Keyword filter done", extra={"input": len(articles), "kept": len(kept)})
        return kept

    compact = [
        {
            "id": a.id,
            "title": flatten_newlines(a.title),
            "summary": truncate_text(flatten_newlines(a.summary), 200),
        }
        for a in articles
    ]
    batches = [compact[i : i + batch_size] for i in range(0, len(compact), batch_size)]
    logger.info("Relevance filtering", extra={"articles": len(articles), "batches": len(batches)})

    selected = set()
    for idx, batch in enumerate(batches, start=1):
        try:
            ids = _relevance_batch(oracle, batch)
        except OracleError as e:
            logger.warning(
                "Relevance batch failed; skipping",
                extra={"batch": idx, "batches": len(batches), "size": len(batch), "error": str(e)},
            )
            continue
        selected.update(ids)
        logger.info("Relevance batch done", extra={"batch": idx, "selected": len(ids)})

    return [a for a in articles if a.id in selected]


def deduplicate_articles(articles: Iterable[Article]) -> List[Article]:
    # Linkless articles key on their id
    by_link = unique_by(articles, lambda a: a.link or f"id:{a.id}")
    return unique_by(by_link, lambda a: normalize_title_for_dedup(a.title))


def _short_date(value: Optional[str]) -> str:
    if not value:
        return "Unknown date"
    try:
        parsed = dateparser.parse(value)
    except (ValueError, OverflowError, TypeError):
        return "Unknown date"
    if parsed is None:
        return "Unknown date"
    return f"{parsed.strftime('%b')} {parsed.day}"


def prepare_articles_for_ai(articles: Iterable[Article]) -> str:
    payload = [
        {
            "id": a.id,
            "source": a.source,
            "title": truncate_text(flatten_newlines(a.title), 200),
            "pubDate": _short_date(a.pub_date),
            "summary": truncate_text(flatten_newlines(a.summary), 500),
        }
        for a in articles
    ]
    return json.dumps(payload, ensure_ascii=False, indent=2)


def select_articles_with_ai(candidates: Sequence[Article], oracle: ChatOracle, max_count: int) -> List[str]:
    """Pass B. Failures propagate: without a ranking there is no episode."""
    user = (
        f"Here are the candidate articles. Select the best {max_count} for today's AI podcast:\n\n"
        f"{prepare_articles_for_ai(candidates)}\n\n"
        "Return the JSON with selectedIds array:"
    )
    raw = oracle.complete(
        RANKING_SYSTEM_PROMPT.format(max_count=max_count),
        user,
        temperature=0.3,
        max_tokens=1000,
        json_mode=True,
    )
    returned = parse_oracle_json(raw, SelectionResponse).selectedIds

    known = {a.id for a in candidates}
    unknown = [i for i in returned if i not in known]
    if unknown:
        logger.warning("Ranking returned ids outside the candidate list", extra={"ids": unknown})
    ids = unique_by((i for i in returned if i in known), lambda i: i)[:max_count]

    if len(ids) < MIN_RECOMMENDED_SELECTION:
        logger.warning(
            "Ranking selected fewer articles than recommended",
            extra={"selected": len(ids), "minimum": MIN_RECOMMENDED_SELECTION},
        )
    return ids


def select_top_articles(
    articles: Sequence[Article],
    relevance_oracle: Optional[ChatOracle],
    ranking_oracle: Optional[ChatOracle],
    max_count: int = 10,
    batch_size: int = BATCH_SIZE,
) -> SelectionResult:
    if ranking_oracle is None:
        raise ConfigurationError("OpenAI API key not configured; article ranking needs the LLM")

    logger.info("Starting article selection", extra={"articles": len(articles), "max_count": max_count})
    ai_articles = filter_ai_articles(articles, relevance_oracle, batch_size=batch_size)
    logger.info("Relevance filter done", extra={"ai_related": len(ai_articles)})
    if not ai_articles:
        raise CurationError("No AI-related articles found")

    unique = deduplicate_articles(ai_articles)
    logger.info("Deduplicated", extra={"before": len(ai_articles), "after": len(unique)})

    ids = select_articles_with_ai(unique, ranking_oracle, max_count)
    logger.info("Selected articles", extra={"selected": len(ids), "from": len(articles)})
    return SelectionResult(selected_ids=tuple(ids))


def resolve_selected(articles: Iterable[Article], selection: SelectionResult) -> List[Article]:
    """Map selected ids back to articles, in ranking order."""
    by_id: Dict[str, Article] = {}
    for a in articles:
        by_id.setdefault(a.id, a)
    stale = [i for i in selection.selected_ids if i not in by_id]
    if stale:
        raise CurationError(f"Selection refers to articles not in this run: {', '.join(stale)}")
    return [by_id[i] for i in selection.selected_ids]


def build_bullet_html_from_selected(selected: Sequence[Article], limit: int = 10) -> str:
    items = "\n".join(
        f'<li><a href="{html.escape(a.link)}" target="_blank" style="color: #007acc; text-decoration: none;">'
        f"{html.escape(a.title)}</a> "
        f'<span style="color: #888; font-size: 0.9em;">({html.escape(a.source)})</span></li>'
        for a in selected[:limit]
    )
    return (
        '<ul style="font-size: 14px; line-height: 1.8; color: #555; list-style-type: disc; padding-left: 20px;">\n'
        f"{items}\n</ul>"
    )
