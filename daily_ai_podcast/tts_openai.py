from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)


class OpenAISpeech:
    def __init__(self, api_key: str, model: str = "gpt-4o-mini-tts", voice: str = "alloy", client: Optional[Any] = None) -> None:
        if client is None:
            from openai import OpenAI

            client = OpenAI(api_key=api_key)
        self.client = client
        self.model = model
        self.voice = voice

    def stream(self, text: str) -> Iterator[bytes]:
        # Streaming response yields raw MP3 bytes
        with self.client.audio.speech.with_streaming_response.create(  # type: ignore[attr-defined]
            model=self.model,
            voice=self.voice,
            input=text,
            response_format="mp3",
        ) as response:
            for block in response.iter_bytes():
                yield block
