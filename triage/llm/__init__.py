"""Provider adapter registry with lazy loading.

Usage:
    from triage.llm import get_adapter

    adapter = get_adapter(ProviderKind.ANTHROPIC)
    body = adapter.format_request(turns, tools, "card_triage", system, 200, model)
"""

import importlib

from triage.core.schemas import ProviderKind
from triage.llm.base import ProviderAdapter

__all__ = ["ProviderAdapter", "available_providers", "get_adapter"]

# Closed mapping: one implementation per ProviderKind member.
_REGISTRY: dict[ProviderKind, tuple[str, str]] = {
    ProviderKind.ANTHROPIC: ("triage.llm.anthropic", "AnthropicAdapter"),
    ProviderKind.OPENROUTER: ("triage.llm.openrouter", "OpenRouterAdapter"),
}

_INSTANCES: dict[ProviderKind, ProviderAdapter] = {}


def get_adapter(kind: ProviderKind | str) -> ProviderAdapter:
    """Return the adapter for a provider kind.

    Adapters are stateless, so one shared instance per kind is handed out.

    Raises:
        ValueError: If the provider name is unknown.
    """
    try:
        kind = ProviderKind(kind)
    except ValueError:
        valid = ", ".join(available_providers())
        msg = f"Unknown LLM provider '{kind}'. Available: {valid}"
        raise ValueError(msg) from None

    if kind not in _INSTANCES:
        module_path, class_name = _REGISTRY[kind]
        module = importlib.import_module(module_path)
        _INSTANCES[kind] = getattr(module, class_name)()
    return _INSTANCES[kind]


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(k.value for k in _REGISTRY)
