from __future__ import annotations

import logging
import os
from typing import Iterable, Iterator, List, Optional, Protocol

import requests

from .config import TTSConfig
from .errors import ConfigurationError, SynthesisError


logger = logging.getLogger(__name__)

MAX_CHUNK_CHARS = 1900
SENTENCE_ENDS = ".?!"
DEEPGRAM_SPEAK_URL = "https://api.deepgram.com/v1/speak"


class SpeechOracle(Protocol):
    def stream(self, text: str) -> Iterable[bytes]:
        """Yield the encoded audio for ``text`` piece by piece."""


def chunk_text(text: str, max_length: int = MAX_CHUNK_CHARS) -> List[str]:
    """Split text into pieces of at most ``max_length`` chars, preferring sentence ends.

    A cut moves back to the last ``.``, ``?`` or ``!`` only when that keeps the
    chunk longer than half of ``max_length``; otherwise the text is cut mid-sentence.
    """
    if max_length <= 0:
        raise ValueError(f"max_length must be positive, got {max_length}")
    if len(text) <= max_length:
        stripped = text.strip()
        return [stripped] if stripped else []

    chunks: List[str] = []
    cursor = 0
    while cursor < len(text):
        end = cursor + max_length
        if end < len(text):
            last_break = max(text.rfind(ch, cursor, end) for ch in SENTENCE_ENDS)
            if last_break > cursor + max_length * 0.5:
                end = last_break + 1
        piece = text[cursor:end].strip()
        if piece:
            chunks.append(piece)
        cursor = end
    return chunks


def synthesize_podcast(script: str, oracle: SpeechOracle, max_chunk_length: int = MAX_CHUNK_CHARS) -> bytes:
    """Synthesize chunk by chunk, in order, and join the MP3 streams as-is.

    One failed chunk fails the whole episode.
    """
    if not script or not script.strip():
        raise SynthesisError("Script cannot be empty")

    chunks = chunk_text(script, max_chunk_length)
    logger.info("Synthesizing chunks", extra={"chunks": len(chunks), "chars": len(script)})
    audio_parts: List[bytes] = []

    for idx, chunk in enumerate(chunks):
        try:
            buf = b"".join(oracle.stream(chunk))
        except Exception as e:  # noqa: BLE001
            raise SynthesisError(f"TTS failed for chunk {idx + 1}/{len(chunks)}: {e}") from e
        if not buf:
            raise SynthesisError(f"Empty audio stream for chunk {idx + 1}/{len(chunks)}")
        logger.info("Chunk synthesized", extra={"chunk_index": idx, "chars": len(chunk), "bytes": len(buf)})
        audio_parts.append(buf)

    # MP3 frames concatenate without re-encoding; no gaps or fades between chunks
    audio = b"".join(audio_parts)
    logger.info("Synthesis complete", extra={"bytes": len(audio), "kb": round(len(audio) / 1024)})
    return audio


class DeepgramSpeech:
    """Deepgram Aura over plain REST; the response body is the MP3 stream."""

    def __init__(self, api_key: str, voice: str = "aura-asteria-en", session: Optional[requests.Session] = None) -> None:
        self.api_key = api_key
        self.voice = voice
        self.session = session or requests.Session()

    def stream(self, text: str) -> Iterator[bytes]:
        with self.session.post(
            DEEPGRAM_SPEAK_URL,
            params={"model": self.voice, "encoding": "mp3"},
            headers={"Authorization": f"Token {self.api_key}", "Content-Type": "application/json"},
            json={"text": text},
            stream=True,
        ) as resp:
            resp.raise_for_status()
            for block in resp.iter_content(chunk_size=8192):
                if block:
                    yield block


def _ensure_credentials_from_inline_json() -> None:
    # Allow credentials via GCP_TTS_SERVICE_ACCOUNT_JSON secret
    inline_json = os.environ.get("GCP_TTS_SERVICE_ACCOUNT_JSON")
    if inline_json and not os.environ.get("GOOGLE_APPLICATION_CREDENTIALS"):
        path = os.path.join(".secrets", "gcp_tts_sa.json")
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(inline_json)
        os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = path


class GoogleSpeech:
    """Google Cloud TTS; answers with the whole MP3 at once, yielded as one block."""

    def __init__(self, language_code: str = "en-US", voice_name: str = "en-US-Standard-C", client=None) -> None:
        from google.cloud import texttospeech

        self._tts = texttospeech
        if client is None:
            _ensure_credentials_from_inline_json()
            client = texttospeech.TextToSpeechClient()
        self.client = client
        self.language_code = language_code
        self.voice_name = voice_name

    def stream(self, text: str) -> Iterator[bytes]:
        tts = self._tts
        response = self.client.synthesize_speech(
            request={
                "input": tts.SynthesisInput(text=text),
                "voice": tts.VoiceSelectionParams(language_code=self.language_code, name=self.voice_name),
                "audio_config": tts.AudioConfig(audio_encoding=tts.AudioEncoding.MP3),
            }
        )
        yield response.audio_content


def make_speech_oracle(cfg: TTSConfig, openai_api_key_env: str = "OPENAI_API_KEY") -> SpeechOracle:
    provider = cfg.provider.lower()
    if provider == "deepgram":
        api_key = os.environ.get(cfg.api_key_env)
        if not api_key:
            raise ConfigurationError(
                f"Missing required environment variable: {cfg.api_key_env} "
                "(get an API key from https://console.deepgram.com/)"
            )
        return DeepgramSpeech(api_key, voice=cfg.voice)
    if provider == "openai":
        from .tts_openai import OpenAISpeech

        api_key = os.environ.get(openai_api_key_env)
        if not api_key:
            raise ConfigurationError(f"Missing required environment variable: {openai_api_key_env}")
        return OpenAISpeech(api_key, model=cfg.openai_model, voice=cfg.openai_voice)
    if provider == "gcp":
        return GoogleSpeech(language_code=cfg.language_code, voice_name=cfg.voice_name)
    raise ConfigurationError(f"Unknown tts.provider '{cfg.provider}'")
