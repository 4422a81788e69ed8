"""Completion provider base — the credential consumer interface.

A provider is handed an already-resolved API key for every call; it
never stores keys and never picks them.
"""

from abc import ABC, abstractmethod


class CompletionError(Exception):
    """Raised when a provider call fails (transport, HTTP status, or shape)."""


class CompletionProvider(ABC):
    """Abstract base for text-generation backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier, e.g. 'gemini'."""

    @abstractmethod
    async def generate(self, api_key: str, prompt: str) -> str:
        """Send the prompt using api_key and return the model's text.

        Must raise CompletionError on any failure, including timeouts
        and responses without text.
        """
