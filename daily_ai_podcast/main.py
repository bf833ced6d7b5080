from __future__ import annotations

import argparse
import logging
from typing import List, Optional, Sequence

from .config import AppConfig, load_config, validate_config
from .duration import format_duration
from .feeds import count_by_source, fetch_all_feeds_sync
from .llm import make_chat_oracle
from .logger import gha_notice, setup_logging
from .mailer import SmtpMailer
from .notifier import Notifier, make_notifier
from .pipeline import Collaborators, report_failure, run_daily_podcast
from .scheduler import run_daily
from .tts import make_speech_oracle


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="daily-ai-podcast", description="Daily AI news podcast generator")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    parser.add_argument("--env-file", default=".env", help="dotenv file with credentials")
    sub = parser.add_subparsers(dest="command")

    run_p = sub.add_parser("run", help="Generate and send today's podcast once")
    run_p.add_argument("--to", action="append", default=None, help="Recipient address (repeatable)")
    run_p.add_argument("--max-count", type=int, default=None, help="Number of stories to select")
    run_p.add_argument("--dry-run", action="store_true", help="Write artifacts but do not send email")

    sched_p = sub.add_parser("schedule", help="Stay resident and run daily at the configured time")
    sched_p.add_argument("--to", action="append", default=None, help="Recipient address (repeatable)")

    sub.add_parser("feeds", help="Fetch feeds and print per-source article counts")
    return parser


def build_collaborators(cfg: AppConfig, notifier: Notifier, dry_run: bool = False) -> Collaborators:
    return Collaborators(
        oracle=make_chat_oracle(cfg.llm.model, cfg.llm.api_key_env),
        speech=make_speech_oracle(cfg.tts, openai_api_key_env=cfg.llm.api_key_env),
        mailer=None if dry_run else SmtpMailer.from_config(cfg.email),
        notifier=notifier,
    )


def run(cfg: AppConfig, recipients: Optional[Sequence[str]] = None, max_count: Optional[int] = None, dry_run: bool = False) -> int:
    notifier = make_notifier(cfg.notify)
    try:
        deps = build_collaborators(cfg, notifier, dry_run=dry_run)
        result = run_daily_podcast(cfg, deps, recipients=recipients, max_count=max_count, dry_run=dry_run)
    except Exception as e:  # noqa: BLE001
        report_failure(notifier, e)
        raise
    logger.info(
        "Podcast run complete",
        extra={
            "articles": len(result.articles),
            "duration": format_duration(result.duration_seconds),
            "message_id": result.message_id,
            "artifacts": result.artifact_paths,
        },
    )
    return 0


def show_feeds(cfg: AppConfig) -> int:
    articles = fetch_all_feeds_sync(cfg.feeds.urls)
    for source, count in sorted(count_by_source(articles).items()):
        print(f"{source}: {count}")
    print(f"total: {len(articles)}")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    cfg = load_config(args.config, env_file=args.env_file)
    setup_logging(cfg.logging.level)
    for msg in validate_config(cfg):
        logger.warning("Config warning: %s", msg)

    command = args.command or "run"
    try:
        if command == "feeds":
            code = show_feeds(cfg)
        elif command == "schedule":
            s = cfg.schedule
            run_daily(lambda: run(cfg, recipients=args.to), s.hour, s.minute, s.timezone)
            code = 0
        else:
            code = run(
                cfg,
                recipients=getattr(args, "to", None),
                max_count=getattr(args, "max_count", None),
                dry_run=getattr(args, "dry_run", False),
            )
        raise SystemExit(code)
    except KeyboardInterrupt:
        logger.info("Interrupted; exiting")
        raise SystemExit(130)
    except Exception as e:  # noqa: BLE001
        gha_notice("ERROR", f"Run failed: {e}")
        logger.exception("Fatal error during run")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
