"""
Prompt loader with versioning and domain organization support.

Prompt templates are Jinja2 strings stored in YAML files:

    v1/
    ├── story/          # Story generation, continuation, scene splitting, cast, locations
    ├── copywriting/    # HOOK, CTA, viral caption, chat refinement
    └── placement/      # Image analysis, image placement

Usage:
    from app.prompts.loader import get_prompt, render_prompt

    template = get_prompt("prompt_image_placement")
    rendered = render_prompt("prompt_hook_user", label="question-style")
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, StrictUndefined

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).resolve().parent
_VERSION = "v1"

_DOMAIN_DIRS = [
    "story",
    "copywriting",
    "placement",
]


@lru_cache(maxsize=1)
def _jinja_env() -> Environment:
    """Create Jinja2 environment for prompt rendering."""
    return Environment(
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=False,
    )


def _read_yaml(yaml_file: Path) -> dict[str, Any]:
    with yaml_file.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{yaml_file} must be a mapping at top level")
    return data


@lru_cache(maxsize=1)
def _load_versioned_prompts() -> dict[str, Any]:
    """Load prompts from the versioned directory structure."""
    prompts: dict[str, Any] = {}
    version_dir = _PROMPTS_DIR / _VERSION

    for domain in _DOMAIN_DIRS:
        domain_dir = version_dir / domain
        if not domain_dir.exists():
            continue

        for yaml_file in sorted(domain_dir.glob("*.yaml")):
            data = _read_yaml(yaml_file)

            # Template syntax errors fail loading so CI catches them
            for key, value in data.items():
                template = value.get("template") if isinstance(value, dict) else value
                if isinstance(template, str):
                    try:
                        _jinja_env().parse(template)
                    except Exception as e:
                        raise ValueError(f"Invalid Jinja2 template in {yaml_file}:{key}: {e}") from e

            prompts.update(data)

    return prompts


def get_prompt(name: str) -> str:
    """
    Get a prompt template by name.

    Supports two prompt shapes in YAML files:
    - String value: { name: "template string" }
    - Mapping value: { name: { template: "...", required_variables: [...] } }

    Raises:
        KeyError: If prompt not found or not a string
    """
    value = _load_versioned_prompts().get(name)
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and "template" in value:
        return value["template"]
    raise KeyError(f"Prompt '{name}' not found or not a string")


def extract_template_variables(template: str) -> set[str]:
    """Extract the base variable names referenced by a Jinja2 template."""
    variables = set()
    for match in re.finditer(r"\{\{\s*([a-zA-Z_][a-zA-Z0-9_]*)", template):
        variables.add(match.group(1))
    for match in re.finditer(r"\{%\s*(?:if|elif)\s+(?:not\s+)?([a-zA-Z_][a-zA-Z0-9_]*)", template):
        variables.add(match.group(1))
    for match in re.finditer(r"\{%\s*for\s+[a-zA-Z_, ]+\s+in\s+([a-zA-Z_][a-zA-Z0-9_]*)", template):
        variables.add(match.group(1))
    return variables


def check_required_variables(name: str, context: dict[str, Any]) -> list[str]:
    """Return the variables `name` needs that `context` does not provide."""
    value = _load_versioned_prompts().get(name)
    if isinstance(value, dict) and value.get("required_variables"):
        return [v for v in value["required_variables"] if v not in context]
    # Loop variables are bound by the template itself
    template = get_prompt(name)
    loop_vars = set(re.findall(r"\{%\s*for\s+([a-zA-Z_][a-zA-Z0-9_]*)", template))
    return sorted(v for v in extract_template_variables(template) - loop_vars if v not in context)


def render_prompt(name: str, validate: bool = False, **context: Any) -> str:
    """
    Render a prompt template with the given context.

    Raises:
        ValueError: If validate=True and required variables are missing
    """
    if validate:
        missing = check_required_variables(name, context)
        if missing:
            raise ValueError(f"Missing required variables for '{name}': {missing}")

    template = get_prompt(name)
    return _jinja_env().from_string(template).render(**context).strip()


def list_prompts(domain: str | None = None) -> list[str]:
    """List available prompt names, optionally for one domain."""
    if domain is None:
        return list(_load_versioned_prompts().keys())

    domain_dir = _PROMPTS_DIR / _VERSION / domain
    if not domain_dir.exists():
        return []

    names: list[str] = []
    for yaml_file in sorted(domain_dir.glob("*.yaml")):
        names.extend(_read_yaml(yaml_file).keys())
    return names


def clear_cache() -> None:
    """Clear all cached prompts (useful for hot-reload scenarios)."""
    _load_versioned_prompts.cache_clear()
    _jinja_env.cache_clear()
