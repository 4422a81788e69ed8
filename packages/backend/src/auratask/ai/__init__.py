"""AI completion providers — pluggable text-generation backends.

AuraTask never talks to a model vendor directly from its services. A
provider takes an API key and a prompt and returns text:

    provider = get_provider("gemini")
    text = await provider.generate(credential.api_key, prompt)

Which key to use is decided by the CredentialResolver, not by providers.
"""

from auratask.ai.base import CompletionError, CompletionProvider
from auratask.ai.gemini import GeminiProvider

__all__ = [
    "CompletionError",
    "CompletionProvider",
    "get_provider",
    "list_providers",
    "register_provider",
]

# ─── Registry ──────────────────────────────────────────────

_PROVIDERS: dict[str, type[CompletionProvider]] = {
    "gemini": GeminiProvider,
}


def get_provider(name: str = "gemini") -> CompletionProvider:
    """Get a provider instance by name.

    Raises ValueError if the provider is not registered.
    """
    cls = _PROVIDERS.get(name)
    if not cls:
        available = ", ".join(sorted(_PROVIDERS.keys()))
        raise ValueError(f"Unknown provider '{name}'. Available: {available}")
    return cls()


def list_providers() -> list[str]:
    """List registered provider names."""
    return sorted(_PROVIDERS.keys())


def register_provider(name: str, provider_cls: type[CompletionProvider]) -> None:
    """Register a custom provider."""
    _PROVIDERS[name] = provider_cls
