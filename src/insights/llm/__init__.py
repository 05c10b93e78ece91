"""Chat provider registry with lazy loading.

Usage:
    from src.insights.llm import get_provider, parse_json_object

    provider = get_provider("deepseek")
    raw = await provider.complete(prompt)
    data = parse_json_object(raw)
"""

from __future__ import annotations

import importlib

from src.insights.llm.base import ChatProvider, parse_json_object

__all__ = ["ChatProvider", "available_providers", "get_provider", "parse_json_object"]

# Lazy registry: maps provider name -> (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "openai": ("src.insights.llm.openai", "OpenAIChatProvider"),
    "deepseek": ("src.insights.llm.deepseek", "DeepSeekChatProvider"),
}


def get_provider(name: str) -> ChatProvider:
    """Instantiate and return a chat provider by name.

    Raises:
        ValueError: If the provider name is unknown.
    """
    if name not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown chat provider '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[name]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls()  # type: ignore[no-any-return]


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(_REGISTRY)
