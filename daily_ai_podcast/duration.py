"""Playback length of the synthesized episode.

ffprobe gives the exact figure; when it is missing or fails, the length is
estimated from the payload size at roughly 320 KB per minute of MP3.
"""
from __future__ import annotations

import logging
import math
import os
import shutil
import subprocess
import tempfile
from typing import Optional

logger = logging.getLogger(__name__)

KB_PER_MINUTE = 320


def estimate_duration_from_size(n_bytes: int) -> int:
    return max(int(round(n_bytes / 1024 / KB_PER_MINUTE * 60)), 0)


def probe_duration(audio: bytes) -> Optional[float]:
    ffprobe = shutil.which("ffprobe")
    if not ffprobe:
        return None

    fd, path = tempfile.mkstemp(prefix="podcast_", suffix=".mp3")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(audio)
        proc = subprocess.run(
            [ffprobe, "-v", "quiet", "-show_entries", "format=duration", "-of", "csv=p=0", path],
            capture_output=True,
            text=True,
        )
    except OSError as e:
        logger.info("ffprobe could not run", extra={"error": str(e)})
        return None
    finally:
        try:
            os.remove(path)
        except OSError:
            pass

    if proc.returncode != 0:
        return None
    try:
        value = float(proc.stdout.strip())
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


def get_mp3_duration(audio: bytes) -> int:
    """Duration in whole seconds. Never raises."""
    try:
        probed = probe_duration(audio)
    except Exception as e:  # noqa: BLE001
        logger.warning("Duration probe failed", extra={"error": str(e)})
        probed = None
    if probed is not None:
        return int(round(probed))
    estimate = estimate_duration_from_size(len(audio))
    logger.info("ffprobe not available, using buffer size estimation", extra={"seconds": estimate})
    return estimate


def format_duration(seconds: int) -> str:
    minutes, rest = divmod(int(seconds), 60)

    def plural(n: int, unit: str) -> str:
        return f"{n} {unit}{'' if n == 1 else 's'}"

    if minutes == 0:
        return plural(rest, "second")
    if rest == 0:
        return plural(minutes, "minute")
    return f"{plural(minutes, 'minute')} {plural(rest, 'second')}"
