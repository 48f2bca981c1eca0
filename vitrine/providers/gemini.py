"""Google Gemini provider adapter for structured-output matching calls."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..llm import LLMClient
from ..logging.decorators import log_llm


class GeminiProviderUnavailable(RuntimeError):
    """Raised when google-generativeai is missing and no client is supplied."""


def create_gemini_client(
    *,
    model: str,
    api_key: str,
    temperature: float = 0.0,
    response_mime_type: Optional[str] = "application/json",
    response_schema: Any = list[str],
    client: Any | None = None,
    default_kwargs: Optional[Dict[str, Any]] = None,
) -> LLMClient:
    """Create an `LLMClient` backed by Google Gemini (Generative AI).

    The generation config declares a JSON response constrained to
    ``response_schema``; by default an array of strings.
    """

    default_params = default_kwargs.copy() if default_kwargs else {}

    if client is None:
        try:
            import google.generativeai as genai
        except ImportError as exc:  # pragma: no cover - import guard
            raise GeminiProviderUnavailable(
                "google-generativeai package is required for Gemini provider"
            ) from exc

        genai.configure(api_key=api_key)
        generation_config: Dict[str, Any] = {"temperature": temperature}
        if response_mime_type:
            generation_config["response_mime_type"] = response_mime_type
        if response_schema is not None:
            generation_config["response_schema"] = response_schema
        generation_config.update(default_params)
        client = genai.GenerativeModel(model, generation_config=generation_config)

    async def _call(*, prompt: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        contents = _prompt_to_contents(prompt)
        request_options = {"timeout": timeout} if timeout is not None else None
        response = await client.generate_content_async(contents, request_options=request_options)
        text = _extract_text(response)
        return {
            "status": 200,
            "text": text,
            "items": None,
            "result": text,
            "error": None,
        }

    return LLMClient(call=log_llm("gemini", model)(_call))


def _prompt_to_contents(prompt: Dict[str, Any]) -> List[Dict[str, Any]]:
    # Gemini has no per-request system role; the system text leads the user turn.
    parts = [
        {"text": str(prompt[role])}
        for role in ("system", "user")
        if prompt.get(role)
    ]
    if not parts:
        parts.append({"text": ""})
    return [{"role": "user", "parts": parts}]


def _extract_text(response: Any) -> Optional[str]:
    if response is None:
        return None
    try:
        text = getattr(response, "text", None)
    except ValueError:
        # The SDK raises when the candidate was blocked or holds no text part.
        text = None
    if text:
        return str(text)
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None
    first = candidates[0]
    if isinstance(first, dict):
        content = first.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
    else:
        content = getattr(first, "content", None)
        parts = getattr(content, "parts", None)
    if not parts:
        return None
    for part in parts:
        text = part.get("text") if isinstance(part, dict) else getattr(part, "text", None)
        if text:
            return str(text)
    return None
