"""Shared fakes: nothing here touches the network."""

import json
from typing import Callable, Dict, List, Optional

import pytest

from daily_ai_podcast.mailer import OutgoingMessage
from daily_ai_podcast.models import Article


def make_article(n: int, source: str = "example", title: Optional[str] = None, pub_date: Optional[str] = None) -> Article:
    return Article.create(
        source=source,
        title=title or f"AI story number {n}",
        link=f"https://example.com/story/{n}",
        summary=f"Summary of AI story {n}.",
        pub_date=pub_date,
    )


def payload_of(user_prompt: str) -> List[Dict[str, str]]:
    """The JSON article list embedded in a curation prompt."""
    body = user_prompt.split("\n\n", 1)[1].rsplit("\n\nReturn", 1)[0]
    return json.loads(body)


class FakeOracle:
    """Chat oracle driven by a handler(system, user) -> str | Exception."""

    def __init__(self, handler: Callable[[str, str], object]) -> None:
        self.handler = handler
        self.calls: List[Dict[str, object]] = []

    def complete(self, system, user, temperature=0.3, max_tokens=1000, json_mode=False):
        self.calls.append(
            {"system": system, "user": user, "temperature": temperature, "max_tokens": max_tokens, "json_mode": json_mode}
        )
        result = self.handler(system, user)
        if isinstance(result, Exception):
            raise result
        return result


def default_handler(ranked: int = 3, script: str = "Welcome to the show. That is all for today.") -> Callable[[str, str], object]:
    """Relevance keeps everything, ranking keeps the first ``ranked`` ids, anything else is the script."""

    def handler(system: str, user: str) -> object:
        if "aiRelatedIds" in system:
            return json.dumps({"aiRelatedIds": [a["id"] for a in payload_of(user)]})
        if "selectedIds" in system:
            return json.dumps({"selectedIds": [a["id"] for a in payload_of(user)][:ranked]})
        return script

    return handler


class FakeSpeech:
    def __init__(self, fail_on: Optional[int] = None, empty_on: Optional[int] = None) -> None:
        self.fail_on = fail_on
        self.empty_on = empty_on
        self.calls: List[str] = []

    def stream(self, text: str):
        idx = len(self.calls)
        self.calls.append(text)
        if idx == self.fail_on:
            raise RuntimeError("speech service unavailable")
        if idx == self.empty_on:
            return iter([])
        return iter([f"<{idx}:".encode(), text[:5].encode(), b">"])


class FakeMailer:
    def __init__(self, message_id: str = "<abc@example.com>") -> None:
        self.message_id = message_id
        self.sent: List[OutgoingMessage] = []

    def send(self, message: OutgoingMessage) -> str:
        self.sent.append(message)
        return self.message_id


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: List[tuple] = []

    def notify(self, severity, message, fields=None):
        self.events.append((severity, message, dict(fields or {})))


@pytest.fixture
def no_ffprobe(monkeypatch):
    from daily_ai_podcast import duration

    monkeypatch.setattr(duration.shutil, "which", lambda name: None)


@pytest.fixture
def clean_email_env(monkeypatch):
    for name in ("EMAIL_RECIPIENTS", "EMAIL_TO"):
        monkeypatch.delenv(name, raising=False)
