"""
Sinks module for speakout package.

A sink consumes audio chunks in segment order: either appending them to an
output file or playing them one after another through a local player.
"""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import BinaryIO, Dict, Optional

from .errors import OutputError
from .model import AudioChunk, AudioFormat
from .ui import play_audio_file, select_player_cmd

logger = logging.getLogger(__name__)


class OrderedSink:
    """
    Base class delivering chunks strictly in index order.

    Chunks that arrive ahead of the next expected index are held until the
    gap is filled. Subclasses implement open(), close() and _deliver().
    """

    def __init__(self):
        self._pending: Dict[int, AudioChunk] = {}
        self._next_index = 0

    @property
    def delivered(self) -> int:
        """Number of chunks delivered so far."""
        return self._next_index

    async def accept(self, chunk: AudioChunk) -> None:
        if chunk.index < self._next_index or chunk.index in self._pending:
            raise ValueError(f"Duplicate audio chunk for segment {chunk.index}")
        self._pending[chunk.index] = chunk
        while self._next_index in self._pending:
            ready = self._pending.pop(self._next_index)
            await self._deliver(ready)
            self._next_index += 1

    def finish(self, total: int) -> None:
        """Check that all `total` chunks were delivered."""
        if self._next_index != total or self._pending:
            raise OutputError(
                f"Audio incomplete: delivered {self._next_index} of {total} segments"
            )

    async def _deliver(self, chunk: AudioChunk) -> None:
        raise NotImplementedError

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    async def __aenter__(self) -> "OrderedSink":
        self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class FileWriter(OrderedSink):
    """Append every chunk's bytes to a single output file."""

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self._file: Optional[BinaryIO] = None

    def open(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = self.path.open("wb")
        except OSError as exc:
            raise OutputError(f"Cannot write output file {self.path}: {exc.strerror or exc}") from exc
        logger.debug("Writing audio to %s", self.path)

    async def _deliver(self, chunk: AudioChunk) -> None:
        if self._file is None:
            raise OutputError(f"Output file {self.path} is not open")
        try:
            self._file.write(chunk.data)
        except OSError as exc:
            raise OutputError(f"Failed writing to {self.path}: {exc.strerror or exc}") from exc

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None


class Player(OrderedSink):
    """
    Play every chunk to completion, one after another.

    Each chunk is written to a temporary file and handed to a system audio
    player; playback runs in a worker thread so later chunks keep downloading.
    """

    def __init__(self, audio_format: AudioFormat):
        super().__init__()
        self.audio_format = audio_format
        if not select_player_cmd(Path(f"segment{audio_format.suffix}"), audio_format):
            raise OutputError(
                f"No suitable audio player found for {audio_format.value} playback "
                "(install ffplay or mpv, or use --output-file)."
            )
        self._tmpdir: Optional[tempfile.TemporaryDirectory] = None

    def open(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory(prefix="speakout_")

    async def _deliver(self, chunk: AudioChunk) -> None:
        if self._tmpdir is None:
            raise OutputError("Player is not open")
        path = Path(self._tmpdir.name) / f"segment-{chunk.index:04d}{self.audio_format.suffix}"
        try:
            path.write_bytes(chunk.data)
        except OSError as exc:
            raise OutputError(f"Cannot buffer audio for playback: {exc.strerror or exc}") from exc

        logger.debug("Playing segment %d from %s", chunk.index, path)
        try:
            returncode = await asyncio.to_thread(play_audio_file, path, self.audio_format)
        except OSError as exc:
            raise OutputError(f"Cannot start audio player for segment {chunk.index}: {exc.strerror or exc}") from exc
        finally:
            path.unlink(missing_ok=True)
        if returncode != 0:
            raise OutputError(f"Audio player failed on segment {chunk.index} (exit code {returncode})")

    def close(self) -> None:
        if self._tmpdir is not None:
            self._tmpdir.cleanup()
            self._tmpdir = None
