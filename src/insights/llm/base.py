"""Abstract base class for chat providers and shared response parsing."""

import json
import re
from abc import ABC, abstractmethod
from typing import Any

SYSTEM_PROMPT = (
    "You are a senior talent partner reviewing a student applicant for a "
    "company's project.\n\n"
    "Return ONLY a JSON object (no markdown, no explanation) with these fields:\n"
    "- summary (string): one or two sentences on overall fit\n"
    "- key_strengths (list[str]): 1-4 short phrases\n"
    "- concerns (list[str]): 0-3 short phrases\n"
    "- recommendation (string): one actionable sentence for the hiring team\n\n"
    "Base every statement on the profile and scores provided. Do not invent "
    "experience the candidate has not listed."
)


def parse_json_object(raw_text: str) -> dict[str, Any]:
    """Parse a model response into a JSON object.

    Handles markdown-wrapped JSON (```json ... ```) and plain JSON.
    """
    cleaned = re.sub(r"^```(?:json)?\s*\n?", "", raw_text.strip())
    cleaned = re.sub(r"\n?```\s*$", "", cleaned)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        msg = f"Failed to parse model response as JSON: {e}"
        raise ValueError(msg) from e

    if not isinstance(data, dict):
        msg = f"Expected a JSON object, got {type(data).__name__}"
        raise ValueError(msg)
    return data


class ChatProvider(ABC):
    """Base class that every chat provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'deepseek')."""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        """Send a prompt and return the raw response text.

        Args:
            prompt: User message.
            model: Override the provider's default model. None uses default.
            system: Override the system prompt. None falls back to SYSTEM_PROMPT.
        """
