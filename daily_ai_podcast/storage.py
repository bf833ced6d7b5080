from __future__ import annotations

import datetime as dt
import logging
import os
from typing import List

from mutagen import MutagenError
from mutagen.easyid3 import EasyID3
from mutagen.id3 import ID3NoHeaderError


logger = logging.getLogger(__name__)


def ensure_dirs(*paths: str) -> None:
    for p in paths:
        os.makedirs(p, exist_ok=True)


def artifact_basename(day: dt.date, prefix: str = "podcast") -> str:
    return f"{prefix}_{day.isoformat()}"


def tag_mp3(path: str, title: str, artist: str, date_str: str) -> None:
    try:
        tags = EasyID3(path)
    except ID3NoHeaderError:
        tags = EasyID3()
    tags["title"] = title
    if artist:
        tags["artist"] = artist
    if date_str:
        tags["date"] = date_str
    tags.save(path)


def save_run_artifacts(
    root_dir: str,
    script: str,
    audio: bytes,
    day: dt.date,
    title: str,
    artist: str = "Daily AI News",
) -> List[str]:
    """Write the script and the tagged MP3 for ``day``; returns both paths.

    Files are outputs only and are never read back by later runs.
    """
    ensure_dirs(root_dir)
    base = os.path.join(root_dir, artifact_basename(day))

    script_path = base + ".txt"
    with open(script_path, "w", encoding="utf-8") as f:
        f.write(script)

    audio_path = base + ".mp3"
    with open(audio_path, "wb") as f:
        f.write(audio)
    try:
        tag_mp3(audio_path, title=title, artist=artist, date_str=day.isoformat())
    except MutagenError as e:
        logger.warning("Could not write ID3 tags", extra={"path": audio_path, "error": str(e)})

    logger.info("Saved run artifacts", extra={"script": script_path, "audio": audio_path})
    return [script_path, audio_path]
