"""Tests for chunking and sequential synthesis."""

import pytest

from conftest import FakeSpeech
from daily_ai_podcast.config import TTSConfig
from daily_ai_podcast.errors import ConfigurationError, SynthesisError
from daily_ai_podcast.tts import DeepgramSpeech, chunk_text, make_speech_oracle, synthesize_podcast


def squash(text):
    return "".join(text.split())


def long_script(sentences=120):
    return " ".join(f"Sentence number {i} talks about a new model release today." for i in range(sentences))


class TestChunkText:
    def test_short_text_is_one_trimmed_chunk(self):
        assert chunk_text("  Hello there.  ") == ["Hello there."]

    def test_exactly_max_is_one_chunk(self):
        text = "a" * 1900
        assert chunk_text(text) == [text]

    def test_blank_text(self):
        assert chunk_text("   ") == []

    def test_long_text_respects_limit_and_reconstructs(self):
        text = long_script()
        assert len(text) > 1900
        chunks = chunk_text(text)
        assert len(chunks) > 1
        assert all(len(c) <= 1900 for c in chunks)
        assert squash("".join(chunks)) == squash(text)

    def test_cuts_at_sentence_end(self):
        chunks = chunk_text(long_script())
        assert all(c.endswith(".") for c in chunks)

    def test_no_punctuation_falls_back_to_hard_cut(self):
        text = "word " * 1000
        chunks = chunk_text(text, 1900)
        assert all(len(c) <= 1900 for c in chunks)
        assert squash("".join(chunks)) == squash(text)

    def test_early_sentence_end_is_ignored(self):
        # The only period sits in the first half of the window
        text = "Short. " + "x" * 3000
        chunks = chunk_text(text, 1000)
        assert len(chunks[0]) == 1000

    def test_custom_limit(self):
        chunks = chunk_text(long_script(20), 200)
        assert all(len(c) <= 200 for c in chunks)

    @pytest.mark.parametrize("limit", [0, -5])
    def test_non_positive_limit_rejected(self, limit):
        with pytest.raises(ValueError):
            chunk_text("Hello there.", limit)


class TestSynthesize:
    def test_chunks_in_order(self):
        speech = FakeSpeech()
        script = long_script()
        audio = synthesize_podcast(script, speech)
        chunks = chunk_text(script)
        assert speech.calls == chunks
        expected = b"".join(f"<{i}:".encode() + c[:5].encode() + b">" for i, c in enumerate(chunks))
        assert audio == expected

    def test_single_chunk(self):
        speech = FakeSpeech()
        assert synthesize_podcast("Hello world.", speech) == b"<0:Hello>"

    def test_empty_script(self):
        speech = FakeSpeech()
        with pytest.raises(SynthesisError):
            synthesize_podcast("  ", speech)
        assert speech.calls == []

    def test_failed_chunk_aborts(self):
        speech = FakeSpeech(fail_on=1)
        with pytest.raises(SynthesisError, match="chunk 2/"):
            synthesize_podcast(long_script(), speech)
        assert len(speech.calls) == 2

    def test_empty_stream_aborts(self):
        with pytest.raises(SynthesisError):
            synthesize_podcast("Hello world.", FakeSpeech(empty_on=0))


class FakeResponse:
    def __init__(self, blocks):
        self.blocks = blocks

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        pass

    def iter_content(self, chunk_size):
        return iter(self.blocks)


class FakeSession:
    def __init__(self):
        self.requests = []

    def post(self, url, **kwargs):
        self.requests.append((url, kwargs))
        return FakeResponse([b"ab", b"", b"cd"])


class TestProviders:
    def test_deepgram_request(self):
        session = FakeSession()
        speech = DeepgramSpeech("key123", voice="aura-asteria-en", session=session)
        assert b"".join(speech.stream("Hi.")) == b"abcd"
        url, kwargs = session.requests[0]
        assert url == "https://api.deepgram.com/v1/speak"
        assert kwargs["params"] == {"model": "aura-asteria-en", "encoding": "mp3"}
        assert kwargs["headers"]["Authorization"] == "Token key123"
        assert kwargs["json"] == {"text": "Hi."}

    def test_deepgram_needs_key(self, monkeypatch):
        monkeypatch.delenv("DEEPGRAM_API_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="DEEPGRAM_API_KEY"):
            make_speech_oracle(TTSConfig(provider="deepgram"))

    def test_deepgram_from_env(self, monkeypatch):
        monkeypatch.setenv("DEEPGRAM_API_KEY", "k")
        speech = make_speech_oracle(TTSConfig(provider="deepgram", voice="aura-luna-en"))
        assert isinstance(speech, DeepgramSpeech)
        assert speech.voice == "aura-luna-en"

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            make_speech_oracle(TTSConfig(provider="espeak"))
