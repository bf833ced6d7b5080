from __future__ import annotations

import json
import logging
import sys
from typing import IO, Any, Dict, Optional


# Attributes every LogRecord carries; anything else came in through `extra={...}`
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        for k, v in record.__dict__.items():
            if k in _RECORD_ATTRS or k in payload or k.startswith("_"):
                continue
            try:
                json.dumps(v)
                payload[k] = v
            except (TypeError, ValueError):
                payload[k] = str(v)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: str = "INFO", stream: Optional[IO[str]] = None) -> None:
    lvl = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(lvl)
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(lvl)
    handler.setFormatter(JsonFormatter())
    root.handlers.clear()
    root.addHandler(handler)
    # Client libraries stay at WARNING or above
    for noisy in ("urllib3", "httpx", "openai"):
        logging.getLogger(noisy).setLevel(max(lvl, logging.WARNING))


def gha_notice(level: str, message: str) -> None:
    # GitHub Actions workflow command syntax
    prefix = {
        "ERROR": "::error::",
        "WARNING": "::warning::",
        "NOTICE": "::notice::",
    }.get(level.upper())
    if prefix:
        print(f"{prefix}{message}")
