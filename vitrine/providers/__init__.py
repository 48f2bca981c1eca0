"""Provider adapters for remote semantic matching."""

from .gemini import GeminiProviderUnavailable, create_gemini_client

__all__ = [
    "GeminiProviderUnavailable",
    "create_gemini_client",
]
