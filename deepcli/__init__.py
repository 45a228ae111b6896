"""Streaming command-line chat client for OpenAI-compatible chat APIs."""

__version__ = "0.1.0"
