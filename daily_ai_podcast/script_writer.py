from __future__ import annotations

import datetime as dt
import logging
from typing import Optional, Sequence, Union

from dateutil import parser as dateparser
from dateutil import tz

from .errors import OracleError, ScriptGenerationError
from .llm import ChatOracle
from .models import Article
from .text_utils import word_count


logger = logging.getLogger(__name__)

EPISODE_TZ = "Europe/Budapest"
SHOW_NAME = "49x AI Podcast"

HOST_SYSTEM_PROMPT = (
    "You are an experienced podcast host specializing in AI and technology news. You create engaging, "
    "informative content that makes complex topics accessible to a broad audience."
)


def opening_line(date_label: str) -> str:
    return (
        "Welcome to the 49 X AI Podcast, your daily briefing on artificial intelligence, "
        f"today is {date_label}."
    )


def closing_line(date_label: str) -> str:
    return f"This was the {SHOW_NAME} for {date_label}. Thanks for listening."


def format_episode_date(value: Union[None, str, dt.datetime] = None, tz_name: str = EPISODE_TZ) -> str:
    """Month and day in the show's timezone, e.g. "October 17". Naive values are taken as UTC."""
    zone = tz.gettz(tz_name)
    if value is None:
        moment = dt.datetime.now(dt.timezone.utc)
    elif isinstance(value, dt.datetime):
        moment = value
    else:
        moment = dateparser.isoparse(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=dt.timezone.utc)
    local = moment.astimezone(zone)
    return f"{local.strftime('%B')} {local.day}"


def episode_day(now: Optional[dt.datetime] = None, tz_name: str = EPISODE_TZ) -> dt.date:
    """Calendar day of the episode in the show's timezone."""
    moment = now or dt.datetime.now(dt.timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=dt.timezone.utc)
    return moment.astimezone(tz.gettz(tz_name)).date()


def format_articles_for_prompt(articles: Sequence[Article]) -> str:
    return "\n\n".join(
        f"{idx}. [{a.source}] {a.title}\n   {a.summary[:200]}..."
        for idx, a in enumerate(articles, start=1)
    )


def build_script_prompt(articles: Sequence[Article], date_label: str) -> str:
    return f"""You are a podcast scriptwriter. Produce a clear, engaging spoken script for the "{SHOW_NAME}".

- The script is meant to be read aloud exactly as written.
- Do NOT include any music cues, stage directions, host name placeholders, or formatting (no bold, no headers).
- Target length: 800-1000 words (about 5-7 minutes spoken).
- Select the most important updates from the data and use only AI or AI related news in the podcast. Anything that is not AI related is not relevant and should not be used for the podcast.
- Smooth transitions between sections.
- Factual, concise, natural tone. Conversational but professional.
- Avoid any fancy wording, robotic style, or overly professional tone. This should be easy to understand and good to listen for the audience.
- Mention sources conversationally ("according to the New York Times...") with no raw URLs.
- The very first sentence must always be:
  "{opening_line(date_label)}"
- The very last lines must always:
   1) Wrap up with "{closing_line(date_label)}"
   2) Include a few sentences summarizing the most important news of the day, like a closing highlight reel.
- Do not duplicate news items. If multiple items cover the same event, merge them.
- Mention dates only as month and day (no years).

ARTICLES TO SUMMARIZE:
{format_articles_for_prompt(articles)}

Generate the podcast script now:"""


def generate_podcast_script(
    articles: Sequence[Article],
    oracle: Optional[ChatOracle],
    local_date: Union[None, str, dt.datetime] = None,
) -> str:
    if not articles:
        raise ScriptGenerationError("No selected articles provided for podcast generation")
    if oracle is None:
        raise ScriptGenerationError("OpenAI API key not configured; cannot generate the script")

    date_label = format_episode_date(local_date)
    logger.info("Generating podcast script", extra={"articles": len(articles), "episode_date": date_label})
    try:
        script = oracle.complete(
            HOST_SYSTEM_PROMPT,
            build_script_prompt(articles, date_label),
            temperature=0.7,
            max_tokens=2000,
        )
    except OracleError as e:
        raise ScriptGenerationError(f"Failed to generate podcast script: {e}") from e

    logger.info("Podcast script generated", extra={"chars": len(script), "words": word_count(script)})
    return script
