"""
CLI module for speakout package.

Contains command-line argument parsing and main application logic.
"""

import argparse
import asyncio
import logging
import os
import sys
from contextlib import aclosing
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv
from openai import AsyncOpenAI
from rich.markup import escape

from . import __version__
from .errors import ConfigError, InputError, SpeakoutError
from .model import (
    DEFAULT_CONCURRENCY,
    DEFAULT_TIMEOUT,
    INSTRUCTION_MODELS,
    KNOWN_TTS_MODELS,
    MAX_INPUT_CHARS,
    SPEED_RANGE,
    AudioFormat,
    RequestConfig,
    Voice,
    create_client,
    split_input,
    synthesize_in_order,
)
from .sinks import FileWriter, OrderedSink, Player
from .sources import read_input
from .ui import console, progress_context, setup_logging

logger = logging.getLogger(__name__)

MAX_CONCURRENCY = 16


# ----------------------------
# CLI setup
# ----------------------------
def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="speakout",
        description="Read text aloud, or save it as audio, using OpenAI TTS.",
    )
    parser.add_argument("input_file", nargs="?", help="Text file to read.")
    parser.add_argument("-c", "--clipboard", action="store_true",
                        help="Read the text currently in the clipboard.")
    parser.add_argument("-d", "--stdin", dest="use_stdin", action="store_true",
                        help="Read the text from standard input.")
    parser.add_argument("-o", "--output-file", metavar="FILE",
                        help="Save audio to this file instead of playing it.")

    parser.add_argument("-f", "--format", dest="audio_format", metavar="FORMAT",
                        default=os.getenv("OPENAI_TTS_FORMAT"),
                        choices=[f.value for f in AudioFormat],
                        help="Audio format (mp3|opus|aac|flac|wav|pcm). "
                             "Defaults to the output file's extension, else mp3.")
    parser.add_argument("-v", "--voice", metavar="VOICE",
                        default=os.getenv("OPENAI_TTS_VOICE", Voice.ALLOY.value),
                        choices=[v.value for v in Voice],
                        help="TTS voice name (e.g., alloy, nova, shimmer).")
    parser.add_argument("-s", "--speed", type=float, default=1.0,
                        help="Speech speed (0.25-4.0, default: 1.0).")
    parser.add_argument("--hd", action="store_true",
                        help="Use the high-definition model (tts-1-hd).")
    parser.add_argument("--model", dest="tts_model", choices=KNOWN_TTS_MODELS,
                        help="TTS model (default: OPENAI_TTS_MODEL, else tts-1).")
    parser.add_argument("--instructions",
                        help="Additional voice instructions (gpt-4o-mini-tts only).")
    parser.add_argument("--markdown", action="store_true",
                        help="Strip Markdown formatting from the input first.")

    parser.add_argument("--max-chars", type=int, default=MAX_INPUT_CHARS,
                        help=f"Maximum characters per request (1-{MAX_INPUT_CHARS}).")
    parser.add_argument("--concurrency", type=int, default=DEFAULT_CONCURRENCY,
                        help=f"Requests in flight at once (1-{MAX_CONCURRENCY}).")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT,
                        help="Per-request timeout in seconds.")

    parser.add_argument("--list-voices", action="store_true",
                        help="Print the known voice names and exit.")
    parser.add_argument("--verbose", action="count", default=0,
                        help="Show progress logs (repeat for debug output).")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def validate_args(args) -> None:
    """Validate command-line arguments."""
    sources = [bool(args.input_file), args.clipboard, args.use_stdin]
    if sum(sources) > 1:
        raise ConfigError("Choose only one input source: a file, --clipboard or --stdin.")
    if not any(sources):
        raise ConfigError("No input source specified (give a file, --clipboard or --stdin).")

    low, high = SPEED_RANGE
    if not (low <= args.speed <= high):
        raise ConfigError(f"Speed must be between {low} and {high}, got {args.speed}")

    if args.hd and args.tts_model not in (None, "tts-1-hd"):
        raise ConfigError(f"--hd conflicts with --model {args.tts_model}")
    selected = resolve_model(args)
    if selected and selected not in KNOWN_TTS_MODELS:
        raise ConfigError(f"Unknown TTS model in OPENAI_TTS_MODEL: {selected}")

    model = "tts-1-hd" if args.hd else (selected or "tts-1")
    if args.instructions and model not in INSTRUCTION_MODELS:
        raise ConfigError(f"--instructions is not supported by {model}")

    if not (1 <= args.max_chars <= MAX_INPUT_CHARS):
        raise ConfigError(f"--max-chars must be between 1 and {MAX_INPUT_CHARS}, got {args.max_chars}")
    if not (1 <= args.concurrency <= MAX_CONCURRENCY):
        raise ConfigError(f"--concurrency must be between 1 and {MAX_CONCURRENCY}, got {args.concurrency}")
    if args.timeout <= 0:
        raise ConfigError(f"--timeout must be positive, got {args.timeout}")


def resolve_model(args) -> Optional[str]:
    """The --model flag, else OPENAI_TTS_MODEL unless --hd was given."""
    if args.tts_model or args.hd:
        return args.tts_model
    return os.getenv("OPENAI_TTS_MODEL") or None


def resolve_format(audio_format: Optional[str], output_file: Optional[str]) -> AudioFormat:
    """Pick the audio format from the flag, the output file's extension, or mp3."""
    if audio_format:
        try:
            fmt = AudioFormat(audio_format.strip().lower())
        except ValueError as exc:
            raise ConfigError(f"Unknown audio format: {audio_format}") from exc
        if output_file:
            inferred = AudioFormat.from_suffix(Path(output_file).suffix)
            if inferred and inferred is not fmt:
                logger.warning("Writing %s audio to a file named %s", fmt.value, output_file)
        return fmt
    if output_file:
        inferred = AudioFormat.from_suffix(Path(output_file).suffix)
        if inferred:
            return inferred
    return AudioFormat.MP3


def build_request_config(args) -> RequestConfig:
    """Turn validated arguments into the per-request settings."""
    try:
        voice = Voice(args.voice.strip().lower())
    except ValueError as exc:
        raise ConfigError(f"Unknown voice: {args.voice}") from exc
    return RequestConfig(
        voice=voice,
        audio_format=resolve_format(args.audio_format, args.output_file),
        speed=args.speed,
        hd=args.hd,
        model=resolve_model(args),
        instructions=args.instructions,
    )


# ----------------------------
# Pipeline
# ----------------------------
async def run(
    text: str,
    config: RequestConfig,
    client: AsyncOpenAI,
    sink: OrderedSink,
    max_chars: int = MAX_INPUT_CHARS,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> int:
    """
    Synthesize text and feed the audio to the sink in order.

    Returns:
        Number of segments synthesized
    """
    segments = split_input(text, max_chars)
    if not segments:
        raise InputError("Input text is empty.")
    total = len(segments)
    verb = "Writing" if isinstance(sink, FileWriter) else "Playing"
    logger.info("Synthesizing %d segment(s) with %s/%s", total, config.tts_model, config.voice.value)

    try:
        async with sink:
            with progress_context(total=total) as progress:
                task = progress.add_task(f"{verb} segment 1/{total}...", total=total)
                chunks = synthesize_in_order(client, segments, config, concurrency=concurrency)
                async with aclosing(chunks):
                    async for chunk in chunks:
                        await sink.accept(chunk)
                        done = sink.delivered
                        progress.update(
                            task,
                            completed=done,
                            description=f"{verb} segment {min(done + 1, total)}/{total}...",
                        )
            sink.finish(total)
    finally:
        await client.close()
    return total


# ----------------------------
# Main application logic
# ----------------------------
def main(argv: Optional[Sequence[str]] = None):
    """Main entry point for the speakout CLI application."""
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    # Handle meta commands immediately
    if args.list_voices:
        print("Known voice names (availability may vary by model):")
        for v in Voice:
            print(f" - {v.value}")
        sys.exit(0)

    try:
        validate_args(args)
        config = build_request_config(args)
    except ConfigError as e:
        parser.error(str(e))

    try:
        client = create_client(timeout=args.timeout)
        if args.output_file:
            sink = FileWriter(Path(args.output_file))
        else:
            sink = Player(config.audio_format)
        text = read_input(
            input_file=args.input_file,
            clipboard=args.clipboard,
            use_stdin=args.use_stdin,
            markdown=args.markdown,
        )
        total = asyncio.run(
            run(text, config, client, sink, max_chars=args.max_chars, concurrency=args.concurrency)
        )
    except SpeakoutError as e:
        logger.debug("Run failed", exc_info=True)
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        console.print("Interrupted.")
        sys.exit(1)

    if args.output_file:
        print(f"Saved audio ({total} segment(s)) to: {args.output_file}")
