"""Jinja2 Markdown prompt templates for the solver.

Templates live beside this module as <name>.md. Block tags are trimmed so
optional sections drop out without leaving blank lines behind.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

_PROMPTS_DIR = Path(__file__).parent


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(_PROMPTS_DIR),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_prompt(template_name: str, **variables: object) -> str:
    """Render prompts/<template_name>.md with the given variables.

    Raises:
        FileNotFoundError: If no such template exists.
    """
    try:
        template = _environment().get_template(f"{template_name}.md")
    except TemplateNotFound:
        raise FileNotFoundError(
            f"Prompt template not found: {_PROMPTS_DIR / template_name}.md"
        ) from None
    return template.render(**variables)
