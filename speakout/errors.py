"""
Errors module for speakout package.

Every failure that should end a run is a SpeakoutError; the CLI turns it
into a message and the matching process exit code.
"""

from typing import Optional


class SpeakoutError(Exception):
    """Base class for errors that terminate a run."""

    exit_code = 1


class InputError(SpeakoutError):
    """The input file, clipboard or stdin could not be read."""

    exit_code = 2


class ConfigError(SpeakoutError):
    """Invalid or conflicting command-line options."""

    exit_code = 2


class SynthesisError(SpeakoutError):
    """
    A speech request failed.

    Attributes:
        kind: one of "auth", "network", "status", "response"
        index: index of the failing segment, None when no segment was involved
    """

    exit_code = 3

    def __init__(self, message: str, kind: str = "response", index: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.index = index


class OutputError(SpeakoutError):
    """The output file or the audio player could not be used."""

    exit_code = 4
