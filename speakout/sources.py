"""
Sources module for speakout package.

Reads the text to speak from a file, the system clipboard or stdin.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

import pyperclip
import regex as re

from .errors import InputError

logger = logging.getLogger(__name__)


# ----------------------------
# Text processing
# ----------------------------
def strip_markdown(raw: str) -> str:
    """Strip Markdown formatting, leaving the readable text."""
    txt = re.sub(r"```.*?```", "", raw, flags=re.DOTALL)
    txt = re.sub(r"`([^`]*)`", r"\1", txt)
    txt = re.sub(r"!\[.*?\]\(.*?\)", "", txt)
    txt = re.sub(r"\[([^\]]+)\]\((?:[^)]+)\)", r"\1", txt)
    txt = re.sub(r"^\s{0,3}#{1,6}\s*", "", txt, flags=re.MULTILINE)
    txt = re.sub(r"^\s{0,3}>\s?", "", txt, flags=re.MULTILINE)
    txt = re.sub(r"^\s{0,3}[-*+]\s+", "", txt, flags=re.MULTILINE)
    txt = re.sub(r"^\s{0,3}\d+\.\s+", "", txt, flags=re.MULTILINE)
    txt = re.sub(r"(\*\*|__)(.+?)\1", r"\2", txt)
    txt = re.sub(r"\n{3,}", "\n\n", txt)
    txt = re.sub(r"[ \t]{2,}", " ", txt)
    return txt.strip()


# ----------------------------
# Readers
# ----------------------------
def read_file(path: Path) -> str:
    """Read a UTF-8 text file."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise InputError(f"Input file not found: {path}") from exc
    except UnicodeDecodeError as exc:
        raise InputError(f"Input file is not valid UTF-8: {path}") from exc
    except OSError as exc:
        raise InputError(f"Failed to read file: {path} ({exc.strerror or exc})") from exc


def read_stdin(stream: Optional[TextIO] = None) -> str:
    """Read all of standard input."""
    stream = stream if stream is not None else sys.stdin
    try:
        return stream.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise InputError(f"Failed to read from stdin: {exc}") from exc


def read_clipboard() -> str:
    """Read the current text contents of the system clipboard."""
    try:
        text = pyperclip.paste()
    except pyperclip.PyperclipException as exc:
        raise InputError(f"Failed to access clipboard contents: {exc}") from exc
    logger.debug("Read %d characters from the clipboard", len(text))
    return text


def read_input(
    input_file: Optional[str] = None,
    clipboard: bool = False,
    use_stdin: bool = False,
    markdown: bool = False,
) -> str:
    """
    Read the input text from exactly one source.

    The caller validates that a single source was chosen; this function
    takes the first one set in the order stdin, clipboard, file.
    """
    if use_stdin:
        text = read_stdin()
    elif clipboard:
        text = read_clipboard()
    elif input_file:
        text = read_file(Path(input_file))
    else:
        raise InputError("No input source specified.")

    if markdown:
        text = strip_markdown(text)
    if not text.strip():
        raise InputError("Input text is empty.")
    return text
