from __future__ import annotations

import datetime as dt
import logging
import os
from typing import Dict, List, Optional, Protocol, Sequence

import requests

from .config import NotifyConfig


logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"
INFO = "info"

_EMBED_STYLE = {
    SUCCESS: (0x2ECC71, ":white_check_mark: Success"),
    ERROR: (0xE74C3C, ":x: Error"),
    INFO: (0x3498DB, ":information_source: Info"),
}


class Notifier(Protocol):
    def notify(self, severity: str, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        ...


class LogNotifier:
    """Default notifier: one structured log record per notification."""

    def notify(self, severity: str, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        extra = {"severity": severity, "fields": dict(fields or {})}
        if severity == ERROR:
            logger.error(message, extra=extra)
        else:
            logger.info(message, extra=extra)


class DiscordWebhookNotifier:
    def __init__(
        self,
        webhook_url: str,
        mention_user_id: str = "",
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.webhook_url = webhook_url
        self.mention_user_id = mention_user_id
        self.session = session or requests.Session()
        self.timeout = timeout

    def build_payload(self, severity: str, message: str, fields: Optional[Dict[str, str]] = None) -> dict:
        color, title = _EMBED_STYLE.get(severity, _EMBED_STYLE[INFO])
        embed = {
            "title": title,
            "description": message[:4096],
            "color": color,
            "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
            "fields": [
                {"name": str(k)[:256], "value": str(v)[:1024] or "-", "inline": False}
                for k, v in (fields or {}).items()
            ],
        }
        payload: dict = {"embeds": [embed]}
        if severity == ERROR and self.mention_user_id:
            payload["content"] = f"<@{self.mention_user_id}>"
            payload["allowed_mentions"] = {"users": [self.mention_user_id]}
        return payload

    def notify(self, severity: str, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        # Webhook failures are logged, never raised
        try:
            resp = self.session.post(
                self.webhook_url, json=self.build_payload(severity, message, fields), timeout=self.timeout
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Discord notification failed", extra={"severity": severity, "error": str(e)})


class FanOutNotifier:
    def __init__(self, notifiers: Sequence[Notifier]) -> None:
        self.notifiers: List[Notifier] = list(notifiers)

    def notify(self, severity: str, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        for n in self.notifiers:
            n.notify(severity, message, fields)


def make_notifier(cfg: NotifyConfig) -> Notifier:
    notifiers: List[Notifier] = [LogNotifier()]
    webhook = os.environ.get(cfg.discord_webhook_env)
    if webhook:
        notifiers.append(DiscordWebhookNotifier(webhook, mention_user_id=cfg.mention_user_id))
    return FanOutNotifier(notifiers)
