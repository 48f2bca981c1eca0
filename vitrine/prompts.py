"""Jinja-backed prompt templates for semantic catalog matching."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Match, Optional

from jinja2 import Environment, StrictUndefined

from .schema import SMART_SEARCH_TEMPLATE, PromptsConfig

DEFAULT_PARTIALS: Dict[str, str] = {
    "sys_base": (
        "You are the search engine of a website catalog. Visitors type short, informal "
        "queries, often in Portuguese, with typos, missing accents or partial words."
    ),
}

DEFAULT_TEMPLATES: Dict[str, Dict[str, str]] = {
    SMART_SEARCH_TEMPLATE: {
        "system": "{{> sys_base }}",
        "user": (
            'User search query: "{{ query }}".\n'
            "Available items: {{ candidates | tojson }}.\n"
            "Analyze the user query. It might contain typos or be written slightly wrong.\n"
            "Return the IDs of the items whose title or description most closely match "
            "the user's intent.\n"
            "Only return a JSON array of strings containing the IDs. Return [] when nothing matches."
        ),
    },
}

_PARTIAL_PATTERN = re.compile(r"{{>\s*([a-zA-Z0-9_]+)\s*}}")


@dataclass
class PromptRenderer:
    """Jinja-backed renderer with partial support."""

    env: Environment
    templates: Dict[str, Dict[str, str]]
    partials: Dict[str, str] = field(default_factory=dict)

    def render(self, name: str, role: str, context: Dict[str, Any]) -> str:
        try:
            template_payload = self.templates[name]
        except KeyError as exc:
            raise KeyError(f"prompt template '{name}' is not defined") from exc
        try:
            source = template_payload[role]
        except KeyError as exc:
            raise KeyError(f"prompt template '{name}' does not define role '{role}'") from exc
        return self._render_source(source, context)

    def render_prompt(self, name: str, context: Dict[str, Any]) -> Dict[str, str]:
        """Render every role of template ``name`` into a provider prompt dict."""

        if name not in self.templates:
            raise KeyError(f"prompt template '{name}' is not defined")
        return {role: self.render(name, role, context) for role in self.templates[name]}

    def _render_source(self, source: str, context: Dict[str, Any]) -> str:
        template = self.env.from_string(_inject_partials(source))
        return template.render(**context, partial=self._partial_factory(context))

    def _partial_factory(self, ctx: Dict[str, Any]) -> Callable[[str, Optional[Dict[str, Any]]], str]:
        def _render_partial(name: str, override: Optional[Dict[str, Any]] = None) -> str:
            try:
                source = self.partials[name]
            except KeyError as exc:
                raise KeyError(f"prompt partial '{name}' is not defined") from exc
            return self._render_source(source, {**ctx, **(override or {})})

        return _render_partial


def build_prompt_renderer(config: Optional[PromptsConfig] = None) -> PromptRenderer:
    """Merge configured prompts over the built-in defaults."""

    env = Environment(undefined=StrictUndefined, autoescape=False, trim_blocks=True, lstrip_blocks=True)
    # Keep non-ASCII titles readable in the prompt.
    env.policies["json.dumps_kwargs"] = {"ensure_ascii": False, "sort_keys": False}
    templates = {name: dict(roles) for name, roles in DEFAULT_TEMPLATES.items()}
    partials = dict(DEFAULT_PARTIALS)
    if config is not None:
        templates.update({name: dict(roles) for name, roles in config.templates.items()})
        partials.update(config.partials)
    return PromptRenderer(env=env, templates=templates, partials=partials)


def _inject_partials(source: str) -> str:
    """Replace custom partial syntax with a helper call."""

    def _replacement(match: Match[str]) -> str:
        return "{{ partial('" + match.group(1) + "') }}"

    return _PARTIAL_PATTERN.sub(_replacement, source)
