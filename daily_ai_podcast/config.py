from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError


DEFAULT_FEEDS: List[str] = [
    "https://openai.com/blog/rss.xml",
    "https://techcrunch.com/category/artificial-intelligence/feed/",
    "https://www.marktechpost.com/feed/",
    "https://www.kdnuggets.com/feed",
    "https://www.ft.com/artificial-intelligence?format=rss",
    "https://news.mit.edu/topic/mitartificial-intelligence2-rss.xml",
    "https://thegradient.pub/rss/",
    "https://www.analyticsvidhya.com/blog/category/artificial-intelligence/feed/",
    "https://www.artificialintelligence-news.com/feed/",
    "https://rss.nytimes.com/services/xml/rss/nyt/Technology.xml",
    "https://research.google/blog/rss",
    "https://dailyai.com/feed",
]


@dataclass
class FeedsConfig:
    urls: List[str] = field(default_factory=lambda: list(DEFAULT_FEEDS))
    # 0 means no cap on what goes into Pass A
    max_articles: int = 0


@dataclass
class LLMConfig:
    model: str = "gpt-4o-mini"
    api_key_env: str = "OPENAI_API_KEY"
    batch_size: int = 100
    max_count: int = 10


@dataclass
class TTSConfig:
    provider: str = "deepgram"
    voice: str = "aura-asteria-en"
    api_key_env: str = "DEEPGRAM_API_KEY"
    max_chars_per_chunk: int = 1900
    # OpenAI TTS specific
    openai_model: str = "gpt-4o-mini-tts"
    openai_voice: str = "alloy"
    # Google TTS specific
    language_code: str = "en-US"
    voice_name: str = "en-US-Standard-C"


@dataclass
class EmailConfig:
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    sender_name: str = "Daily AI News"
    subject: str = "Daily AI News Podcast"
    recipients: List[str] = field(default_factory=list)


@dataclass
class ScheduleConfig:
    hour: int = 6
    minute: int = 30
    timezone: str = "Europe/Budapest"


@dataclass
class OutputConfig:
    root_dir: str = "output"


@dataclass
class NotifyConfig:
    discord_webhook_env: str = "DISCORD_WEBHOOK_URL"
    mention_user_id: str = ""


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class AppConfig:
    feeds: FeedsConfig = field(default_factory=FeedsConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    tts: TTSConfig = field(default_factory=TTSConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str = "config.yaml", env_file: Optional[str] = ".env") -> AppConfig:
    """Read ``config.yaml`` (all keys optional) and overlay environment overrides.

    A missing file is not an error: the defaults describe the production setup.
    """
    if env_file:
        load_dotenv(env_file)

    data: Dict[str, Any] = {}
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    feeds = data.get("feeds", {}) or {}
    llm = data.get("llm", {}) or {}
    tts = data.get("tts", {}) or {}
    email = data.get("email", {}) or {}
    schedule = data.get("schedule", {}) or {}
    output = data.get("output", {}) or {}
    notify = data.get("notify", {}) or {}
    logging_cfg = data.get("logging", {}) or {}

    return AppConfig(
        feeds=FeedsConfig(
            urls=list(feeds.get("urls") or DEFAULT_FEEDS),
            max_articles=int(feeds.get("max_articles", 0)),
        ),
        llm=LLMConfig(
            model=os.environ.get("OPENAI_MODEL") or llm.get("model", "gpt-4o-mini"),
            api_key_env=llm.get("api_key_env", "OPENAI_API_KEY"),
            batch_size=int(llm.get("batch_size", 100)),
            max_count=int(llm.get("max_count", 10)),
        ),
        tts=TTSConfig(
            provider=str(tts.get("provider", "deepgram")).lower(),
            voice=os.environ.get("DEEPGRAM_VOICE_ID") or tts.get("voice", "aura-asteria-en"),
            api_key_env=tts.get("api_key_env", "DEEPGRAM_API_KEY"),
            max_chars_per_chunk=int(tts.get("max_chars_per_chunk", 1900)),
            openai_model=tts.get("openai_model", "gpt-4o-mini-tts"),
            openai_voice=tts.get("openai_voice", "alloy"),
            language_code=tts.get("language_code", "en-US"),
            voice_name=tts.get("voice_name", "en-US-Standard-C"),
        ),
        email=EmailConfig(
            smtp_host=os.environ.get("SMTP_HOST") or email.get("smtp_host", "smtp.gmail.com"),
            smtp_port=int(os.environ.get("SMTP_PORT") or email.get("smtp_port", 587)),
            sender_name=email.get("sender_name", "Daily AI News"),
            subject=email.get("subject", "Daily AI News Podcast"),
            recipients=list(email.get("recipients", []) or []),
        ),
        schedule=ScheduleConfig(
            hour=int(schedule.get("hour", 6)),
            minute=int(schedule.get("minute", 30)),
            timezone=schedule.get("timezone", "Europe/Budapest"),
        ),
        output=OutputConfig(root_dir=output.get("root_dir", "output")),
        notify=NotifyConfig(
            discord_webhook_env=notify.get("discord_webhook_env", "DISCORD_WEBHOOK_URL"),
            mention_user_id=str(notify.get("mention_user_id", "") or ""),
        ),
        logging=LoggingConfig(level=logging_cfg.get("level", "INFO")),
    )


def require_env(*names: str) -> Dict[str, str]:
    """Return the values of ``names``; raise listing every missing one."""
    missing = [n for n in names if not os.environ.get(n)]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Add them to the environment or the .env file."
        )
    return {n: os.environ[n] for n in names}


def validate_config(cfg: AppConfig) -> List[str]:
    """Lightweight config validation that logs warnings but avoids hard failures.

    Returns a list of warning strings (empty if none).
    """
    warnings: List[str] = []

    if not cfg.feeds.urls:
        warnings.append("feeds.urls is empty; nothing to fetch")

    if not os.environ.get(cfg.llm.api_key_env):
        warnings.append(
            f"env var '{cfg.llm.api_key_env}' not set; runs stop with a configuration error "
            "before any feed is fetched"
        )

    provider = cfg.tts.provider
    if provider not in {"deepgram", "openai", "gcp"}:
        warnings.append(f"tts.provider '{provider}' not in ['deepgram','openai','gcp']")
    if provider == "deepgram" and not os.environ.get(cfg.tts.api_key_env):
        warnings.append(f"Deepgram TTS selected but env var '{cfg.tts.api_key_env}' not set")
    if provider == "openai" and not os.environ.get(cfg.llm.api_key_env):
        warnings.append(f"OpenAI TTS selected but env var '{cfg.llm.api_key_env}' not set")

    if cfg.tts.max_chars_per_chunk <= 0:
        warnings.append("tts.max_chars_per_chunk must be positive")
    if cfg.llm.batch_size <= 0:
        warnings.append("llm.batch_size must be positive")

    if not 0 <= cfg.schedule.hour <= 23 or not 0 <= cfg.schedule.minute <= 59:
        warnings.append(
            f"schedule time {cfg.schedule.hour:02d}:{cfg.schedule.minute:02d} is not a valid wall-clock time"
        )

    return warnings
