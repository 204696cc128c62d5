"""Tests for sources module."""

import io
from unittest.mock import patch

import pyperclip
import pytest

from speakout.errors import InputError
from speakout.sources import read_clipboard, read_file, read_input, read_stdin, strip_markdown


def test_strip_markdown():
    raw = (
        "# Title\n\n"
        "Some **bold** text with `code` and a [link](https://example.com).\n"
        "![image](pic.png)\n"
        "- item one\n"
        "1. numbered\n"
        "> quoted\n\n\n\n"
        "```\nprint('skip')\n```\n"
        "End."
    )
    text = strip_markdown(raw)
    assert text.startswith("Title\n\nSome bold text with code and a link.")
    assert "item one" in text and "- item" not in text
    assert "numbered" in text and "1." not in text
    assert "quoted" in text and ">" not in text
    assert "print" not in text
    assert "pic.png" not in text
    assert "\n\n\n" not in text
    assert text.endswith("End.")


def test_read_file(tmp_path):
    path = tmp_path / "input.txt"
    path.write_text("Héllo there", encoding="utf-8")
    assert read_file(path) == "Héllo there"


def test_read_file_missing(tmp_path):
    with pytest.raises(InputError, match="not found"):
        read_file(tmp_path / "missing.txt")


def test_read_file_not_utf8(tmp_path):
    path = tmp_path / "latin1.txt"
    path.write_bytes(b"caf\xe9")
    with pytest.raises(InputError, match="UTF-8"):
        read_file(path)


def test_read_file_directory(tmp_path):
    with pytest.raises(InputError, match="Failed to read file"):
        read_file(tmp_path)


def test_read_stdin():
    assert read_stdin(io.StringIO("piped text")) == "piped text"


@patch("speakout.sources.pyperclip.paste", return_value="Clipped ✓")
def test_read_clipboard(mock_paste):
    assert read_clipboard() == "Clipped ✓"
    mock_paste.assert_called_once_with()


@patch("speakout.sources.pyperclip.paste")
def test_read_clipboard_unavailable(mock_paste):
    mock_paste.side_effect = pyperclip.PyperclipException("could not find a copy/paste mechanism")
    with pytest.raises(InputError, match="copy/paste mechanism") as excinfo:
        read_clipboard()
    assert isinstance(excinfo.value.__cause__, pyperclip.PyperclipException)


@patch("speakout.sources.pyperclip.paste", return_value="")
def test_read_input_empty_clipboard(mock_paste):
    with pytest.raises(InputError, match="empty"):
        read_input(clipboard=True)


def test_read_input_from_file_with_markdown(tmp_path):
    path = tmp_path / "notes.md"
    path.write_text("## Heading\n\nBody text.", encoding="utf-8")
    assert read_input(input_file=str(path), markdown=True) == "Heading\n\nBody text."
    assert read_input(input_file=str(path)) == "## Heading\n\nBody text."


def test_read_input_from_stdin():
    with patch("speakout.sources.sys.stdin", io.StringIO("from stdin")):
        assert read_input(use_stdin=True) == "from stdin"


@patch("speakout.sources.read_clipboard", return_value="from clipboard")
def test_read_input_from_clipboard(mock_clip):
    assert read_input(clipboard=True) == "from clipboard"


def test_read_input_empty(tmp_path):
    path = tmp_path / "blank.txt"
    path.write_text("  \n\t", encoding="utf-8")
    with pytest.raises(InputError, match="empty"):
        read_input(input_file=str(path))


def test_read_input_requires_source():
    with pytest.raises(InputError, match="No input source"):
        read_input()
