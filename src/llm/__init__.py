"""
LLM client module for OpenAI-compatible chat APIs.
"""

from .client import ChatClient, create_client

__all__ = ["ChatClient", "create_client"]
