"""Relay exposing a plain-text streaming chat endpoint atop an OpenAI-compatible upstream.

The relay injects credentials, forwards the conversation with streaming enabled
and rewrites the upstream SSE body into bare text fragments.
"""

__all__ = []
