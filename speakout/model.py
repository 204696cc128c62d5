"""
Model module for speakout package.

Contains the voice/format catalogs, request configuration, text chunking
and the OpenAI speech calls that turn segments into audio chunks.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, List, Optional, Sequence, Tuple

import regex as re
from openai import (
    APIConnectionError,
    APIStatusError,
    AsyncOpenAI,
    AuthenticationError,
    PermissionDeniedError,
)

from .errors import SynthesisError

logger = logging.getLogger(__name__)

# ----------------------------
# Constants and catalogs
# ----------------------------
MAX_INPUT_CHARS = 4096
DEFAULT_CONCURRENCY = 4
DEFAULT_TIMEOUT = 120.0
SPEED_RANGE = (0.25, 4.0)

# PCM responses are raw samples with a fixed layout.
PCM_SAMPLE_RATE = 24000
PCM_CHANNELS = 1

KNOWN_TTS_MODELS = ["tts-1", "tts-1-hd", "gpt-4o-mini-tts"]

# Models that accept the "instructions" parameter.
INSTRUCTION_MODELS = {"gpt-4o-mini-tts"}


class Voice(str, Enum):
    ALLOY = "alloy"
    ASH = "ash"
    BALLAD = "ballad"
    CORAL = "coral"
    ECHO = "echo"
    FABLE = "fable"
    NOVA = "nova"
    ONYX = "onyx"
    SAGE = "sage"
    SHIMMER = "shimmer"
    VERSE = "verse"

    def __str__(self) -> str:
        return self.value


class AudioFormat(str, Enum):
    MP3 = "mp3"
    OPUS = "opus"
    AAC = "aac"
    FLAC = "flac"
    WAV = "wav"
    PCM = "pcm"

    def __str__(self) -> str:
        return self.value

    @property
    def suffix(self) -> str:
        return f".{self.value}"

    @classmethod
    def from_suffix(cls, suffix: str) -> Optional["AudioFormat"]:
        """Map a file suffix such as '.mp3' to a format, or None if unknown."""
        ext = suffix.lower().lstrip(".")
        if ext == "ogg":
            return cls.OPUS
        try:
            return cls(ext)
        except ValueError:
            return None


@dataclass(frozen=True)
class RequestConfig:
    """Parameters applied to every segment's speech request."""

    voice: Voice = Voice.ALLOY
    audio_format: AudioFormat = AudioFormat.MP3
    speed: float = 1.0
    hd: bool = False
    model: Optional[str] = None
    instructions: Optional[str] = None

    @property
    def tts_model(self) -> str:
        if self.hd:
            return "tts-1-hd"
        return self.model or "tts-1"

    def request_params(self, text: str) -> dict:
        params = {
            "model": self.tts_model,
            "voice": self.voice.value,
            "input": text,
            "response_format": self.audio_format.value,
            "speed": self.speed,
        }
        if self.instructions and self.tts_model in INSTRUCTION_MODELS:
            params["instructions"] = self.instructions
        return params


@dataclass(frozen=True)
class Segment:
    index: int
    text: str


@dataclass(frozen=True)
class AudioChunk:
    index: int
    data: bytes


# ----------------------------
# Chunking
# ----------------------------
_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")
_SENTENCE_END = re.compile(r"([.!?…。！？]+[\"'”’»)\]]*)(\s+)")
_WHITESPACE = re.compile(r"\s+")


def _find_cut(text: str, max_length: int) -> Tuple[int, int]:
    """
    Find where to split text, which is longer than max_length.

    Returns (end, resume): the segment is text[:end] and the rest of the
    input starts at text[resume:].
    """
    window = text[: max_length + 1]
    half = max_length // 2

    paragraphs = [m for m in _PARAGRAPH_BREAK.finditer(window) if m.start() >= half]
    if paragraphs:
        last = paragraphs[-1]
        return last.start(), last.end()

    sentences = [m for m in _SENTENCE_END.finditer(window) if m.end(1) >= half]
    if sentences:
        last = sentences[-1]
        return last.end(1), last.end()

    spaces = list(_WHITESPACE.finditer(window))
    if spaces:
        last = spaces[-1]
        return last.start(), last.end()

    # A single run of non-whitespace longer than the limit.
    return max_length, max_length


def split_input(text: str, max_length: int = MAX_INPUT_CHARS) -> List[Segment]:
    """
    Split text into ordered segments of at most max_length characters.

    Splits prefer paragraph breaks, then sentence ends, then any whitespace,
    and only cut inside a word when a word is longer than the limit.
    Whitespace at split points and around the whole text is dropped, so
    no segment is empty and whitespace-only input gives no segments.
    """
    if max_length < 1:
        raise ValueError(f"max_length must be at least 1, got {max_length}")

    segments: List[Segment] = []
    remaining = text.strip()
    while remaining:
        if len(remaining) <= max_length:
            piece, remaining = remaining, ""
        else:
            end, resume = _find_cut(remaining, max_length)
            piece, remaining = remaining[:end].rstrip(), remaining[resume:].lstrip()
        segments.append(Segment(index=len(segments), text=piece))
    return segments


# ----------------------------
# Audio synthesis
# ----------------------------
def create_client(api_key: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT) -> AsyncOpenAI:
    """
    Build the async OpenAI client.

    Raises SynthesisError(kind="auth") when no credential is available, so a
    missing key fails before any request is made. Automatic retries are off.
    """
    api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY")
    if not api_key or not api_key.strip():
        raise SynthesisError(
            "Missing OPENAI_API_KEY (set it in your environment or .env).",
            kind="auth",
        )
    return AsyncOpenAI(api_key=api_key.strip(), timeout=timeout, max_retries=0)


async def synthesize_segment(
    client: AsyncOpenAI,
    segment: Segment,
    config: RequestConfig,
    total: Optional[int] = None,
) -> AudioChunk:
    """
    Synthesize one segment and return its audio.

    Args:
        client: AsyncOpenAI client instance
        segment: Segment to synthesize
        config: Voice, format, speed and model settings
        total: Number of segments in the run, for log messages only

    Raises:
        SynthesisError: on authentication, network, HTTP status or
            empty-response failures
    """
    position = f"{segment.index + 1}/{total}" if total else str(segment.index + 1)
    logger.info("Fetching audio for segment %s (%d chars)", position, len(segment.text))

    try:
        response = await client.audio.speech.create(**config.request_params(segment.text))
    except (AuthenticationError, PermissionDeniedError) as exc:
        raise SynthesisError(
            f"Authentication failed for segment {segment.index}: {exc}",
            kind="auth",
            index=segment.index,
        ) from exc
    except APIConnectionError as exc:
        raise SynthesisError(
            f"Network error for segment {segment.index}: {exc}",
            kind="network",
            index=segment.index,
        ) from exc
    except APIStatusError as exc:
        raise SynthesisError(
            f"Speech API returned HTTP {exc.status_code} for segment {segment.index}: {exc.message}",
            kind="status",
            index=segment.index,
        ) from exc

    data = response.content
    if not data:
        raise SynthesisError(
            f"Speech API returned no audio for segment {segment.index}",
            kind="response",
            index=segment.index,
        )
    logger.debug("Segment %s: received %d bytes", position, len(data))
    return AudioChunk(index=segment.index, data=data)


async def synthesize_in_order(
    client: AsyncOpenAI,
    segments: Sequence[Segment],
    config: RequestConfig,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> AsyncIterator[AudioChunk]:
    """
    Yield one AudioChunk per segment, in segment order.

    Up to `concurrency` requests run at once. A chunk that finishes early is
    held until every earlier chunk has been yielded. The first failure of any
    segment is raised as soon as it happens, even while earlier segments are
    still pending; no new request starts after it and the outstanding ones
    are cancelled.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")

    semaphore = asyncio.Semaphore(concurrency)
    total = len(segments)
    failures: List[BaseException] = []
    failed = asyncio.Event()

    async def fetch(segment: Segment) -> AudioChunk:
        async with semaphore:
            # Recorded before the semaphore is released, so waiting segments see it.
            if failures:
                raise asyncio.CancelledError()
            try:
                return await synthesize_segment(client, segment, config, total=total)
            except Exception as exc:
                failures.append(exc)
                failed.set()
                raise

    tasks = [asyncio.create_task(fetch(segment)) for segment in segments]
    failure = asyncio.create_task(failed.wait())
    try:
        for task in tasks:
            await asyncio.wait({task, failure}, return_when=asyncio.FIRST_COMPLETED)
            if failures:
                raise failures[0]
            yield task.result()
    finally:
        failure.cancel()
        for task in tasks:
            task.cancel()
        await asyncio.gather(failure, *tasks, return_exceptions=True)
