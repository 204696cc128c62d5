"""
UI module for speakout package.

Contains the console, progress bars, logging setup and audio player lookup.
"""

import logging
import os
import shutil
import subprocess
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from .model import PCM_CHANNELS, PCM_SAMPLE_RATE, AudioFormat

# Status output goes to stderr so stdout stays clean for piping.
console = Console(stderr=True)

LOG_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


def setup_logging(verbosity: int = 0) -> None:
    """
    Route the standard logging module through Rich.

    -v gives INFO, -vv DEBUG; SPEAKOUT_LOG_LEVEL (e.g. "debug") overrides both.
    """
    level = LOG_LEVELS[min(max(verbosity, 0), len(LOG_LEVELS) - 1)]
    override = os.getenv("SPEAKOUT_LOG_LEVEL")
    if override:
        level = logging.getLevelName(override.strip().upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # The HTTP stack is chatty at INFO.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


@contextmanager
def progress_context(total: Optional[int] = None) -> Iterator[Progress]:
    """
    Context manager for a transient Rich progress bar on stderr.

    Args:
        total: Total number of items (None for indeterminate progress)
    """
    with Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn() if total else "",
        TimeElapsedColumn(),
        transient=True,
        console=console,
    ) as progress:
        yield progress


# ----------------------------
# Audio players
# ----------------------------
def _pcm_player_cmd(audio_path: Path) -> Optional[List[str]]:
    """Players that can take raw PCM with explicit sample parameters."""
    rate, channels = str(PCM_SAMPLE_RATE), str(PCM_CHANNELS)
    # ffplay reads raw s16le as mono by default; its channel flags differ across FFmpeg releases.
    if shutil.which("ffplay"):
        return ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet",
                "-f", "s16le", "-ar", rate, str(audio_path)]
    if shutil.which("mpv"):
        return ["mpv", "--no-video", "--really-quiet", "--demuxer=rawaudio",
                f"--demuxer-rawaudio-rate={rate}", f"--demuxer-rawaudio-channels={channels}",
                "--demuxer-rawaudio-format=s16le", str(audio_path)]
    if sys.platform.startswith("linux") and shutil.which("aplay"):
        return ["aplay", "-q", "-t", "raw", "-f", "S16_LE", "-r", rate, "-c", channels,
                str(audio_path)]
    if shutil.which("play"):
        return ["play", "-q", "-t", "raw", "-r", rate, "-e", "signed", "-b", "16",
                "-c", channels, str(audio_path)]
    return None


def select_player_cmd(audio_path: Path, audio_format: AudioFormat) -> Optional[List[str]]:
    """Return a list suitable for subprocess to play audio on macOS/Linux, or None if not found."""
    if audio_format is AudioFormat.PCM:
        return _pcm_player_cmd(audio_path)

    ext = audio_format.value
    platform = sys.platform

    # macOS: afplay is standard
    if platform == "darwin":
        if shutil.which("afplay"):
            return ["afplay", str(audio_path)]
        if shutil.which("ffplay"):
            return ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet", str(audio_path)]
        if shutil.which("mpv"):
            return ["mpv", "--no-video", "--really-quiet", str(audio_path)]
        if shutil.which("vlc"):
            return ["vlc", "--intf", "dummy", "--play-and-exit", "--quiet", str(audio_path)]
        return None

    # Linux
    if platform.startswith("linux"):
        if shutil.which("ffplay"):
            return ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet", str(audio_path)]
        if shutil.which("mpv"):
            return ["mpv", "--no-video", "--really-quiet", str(audio_path)]
        if shutil.which("vlc"):
            return ["vlc", "--intf", "dummy", "--play-and-exit", "--quiet", str(audio_path)]
        if shutil.which("mplayer"):
            return ["mplayer", "-really-quiet", str(audio_path)]
        # Format-specific fallbacks
        if ext in {"mp3", "aac", "opus"} and shutil.which("mpg123"):
            return ["mpg123", "-q", str(audio_path)]
        if ext in {"wav"} and shutil.which("aplay"):
            return ["aplay", "-q", str(audio_path)]
        if ext in {"wav", "flac"} and shutil.which("paplay"):
            return ["paplay", str(audio_path)]
        if shutil.which("play"):
            return ["play", "-q", str(audio_path)]
        return None

    # Windows has no command-line player we can rely on
    return None


def play_audio_file(audio_path: Path, audio_format: AudioFormat) -> int:
    """
    Play an audio file to completion using an available system player.

    Returns:
        Return code from the player (0 for success, 1 if no player was found)
    """
    cmd = select_player_cmd(audio_path, audio_format)
    if not cmd:
        return 1
    return subprocess.call(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
