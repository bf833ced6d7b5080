"""The daily run: fetch, curate, script, speak, measure, deliver.

Collaborators (LLM, speech, mail, notifications) are passed in so a run can be
exercised end to end with fakes. Only one run may be in flight per process.
"""
from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .config import AppConfig
from .curator import resolve_selected, select_top_articles
from .duration import format_duration, get_mp3_duration
from .errors import ConfigurationError, RunInProgressError
from .feeds import count_by_source, fetch_all_feeds_sync
from .llm import ChatOracle
from .mailer import Attachment, Mailer, build_message, generate_email_content, resolve_recipients
from .models import Article, PodcastRun
from .notifier import ERROR, INFO, SUCCESS, Notifier
from .script_writer import episode_day, generate_podcast_script
from .storage import artifact_basename, save_run_artifacts
from .text_utils import word_count
from .tts import SpeechOracle, synthesize_podcast


logger = logging.getLogger(__name__)

_RUN_LOCK = threading.Lock()


@dataclass
class Collaborators:
    oracle: Optional[ChatOracle]
    speech: SpeechOracle
    mailer: Optional[Mailer]
    notifier: Notifier
    fetch_articles: Callable[[Sequence[str]], List[Article]] = fetch_all_feeds_sync


def run_daily_podcast(
    cfg: AppConfig,
    deps: Collaborators,
    recipients: Optional[Sequence[str]] = None,
    max_count: Optional[int] = None,
    dry_run: bool = False,
    today: Optional[dt.date] = None,
) -> PodcastRun:
    """Run the whole pipeline once; a second concurrent call is rejected."""
    if not _RUN_LOCK.acquire(blocking=False):
        logger.warning("Podcast run already in progress; rejecting trigger")
        raise RunInProgressError("A podcast run is already in progress")
    try:
        return _run(cfg, deps, recipients, max_count, dry_run, today)
    finally:
        _RUN_LOCK.release()


def _run(
    cfg: AppConfig,
    deps: Collaborators,
    recipients: Optional[Sequence[str]],
    max_count: Optional[int],
    dry_run: bool,
    today: Optional[dt.date],
) -> PodcastRun:
    now = dt.datetime.now(dt.timezone.utc)
    # Artifact names and the email footer use the same calendar day as the script
    day = today or episode_day(now)
    notifier = deps.notifier
    # Configuration problems surface before any network call
    if deps.oracle is None:
        raise ConfigurationError(f"Missing required environment variable: {cfg.llm.api_key_env}")
    emails: List[str] = []
    if not dry_run:
        emails = resolve_recipients(recipients, cfg.email.recipients)

    notifier.notify(INFO, "Podcast generation started", {"date": day.isoformat(), "dry_run": str(dry_run)})

    articles = deps.fetch_articles(cfg.feeds.urls)
    by_source = count_by_source(articles)
    logger.info("Articles fetched", extra={"articles": len(articles), "by_source": by_source})
    notifier.notify(INFO, "News collected", {"articles": str(len(articles)), "sources": str(len(by_source))})
    pool = articles[: cfg.feeds.max_articles] if cfg.feeds.max_articles > 0 else articles

    selection = select_top_articles(
        pool,
        relevance_oracle=deps.oracle,
        ranking_oracle=deps.oracle,
        max_count=max_count or cfg.llm.max_count,
        batch_size=cfg.llm.batch_size,
    )
    selected = resolve_selected(pool, selection)

    script = generate_podcast_script(selected, deps.oracle, local_date=now)
    notifier.notify(
        INFO, "Podcast script generated", {"characters": str(len(script)), "words": str(word_count(script))}
    )

    audio = synthesize_podcast(script, deps.speech, max_chunk_length=cfg.tts.max_chars_per_chunk)
    duration = get_mp3_duration(audio)
    notifier.notify(
        INFO, "Audio synthesized", {"duration": format_duration(duration), "size": f"{len(audio) // 1024} KB"}
    )

    paths = save_run_artifacts(
        cfg.output.root_dir,
        script,
        audio,
        day,
        title=f"{cfg.email.subject} {day.isoformat()}",
        artist=cfg.email.sender_name,
    )
    run = PodcastRun(articles=selected, script=script, audio=audio, duration_seconds=duration, artifact_paths=paths)

    if dry_run or deps.mailer is None:
        logger.info("Dry run; skipping email", extra={"artifacts": paths})
        notifier.notify(SUCCESS, "Podcast generated (no email sent)", {"duration": format_duration(duration)})
        return run

    base = artifact_basename(day)
    message = build_message(
        cfg.email.subject,
        generate_email_content(selected, len(script), duration, today=day),
        emails,
        attachments=[
            Attachment(f"{base}.txt", script, "text/plain"),
            Attachment(f"{base}.mp3", audio, "audio/mpeg"),
        ],
    )
    run.message_id = deps.mailer.send(message)
    notifier.notify(
        SUCCESS,
        "Daily podcast email sent successfully",
        {"recipients": str(len(emails)), "message_id": run.message_id or "unknown"},
    )
    return run


def report_failure(notifier: Notifier, error: BaseException) -> None:
    notifier.notify(ERROR, f"Daily podcast generation failed: {error}", {"type": type(error).__name__})
