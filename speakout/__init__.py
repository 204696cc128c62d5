"""
speakout - Read text aloud, or save it as audio, using OpenAI TTS.

A CLI utility that splits text from a file, the clipboard or stdin into
request-sized segments, synthesizes them with OpenAI's text-to-speech API
and plays or saves the audio in order.
"""

__version__ = "0.1.0"

from .model import AudioChunk, AudioFormat, RequestConfig, Segment, Voice, split_input
from .cli import main

__all__ = ["AudioChunk", "AudioFormat", "RequestConfig", "Segment", "Voice", "split_input", "main"]
