"""Prompt templates and message framing applied to prepared text."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from llm_prepare.exceptions import InvalidParameterError, SourceReadError
from llm_prepare.logging import logger

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

_PLACEHOLDER_RE = re.compile(r"\{\{([^}]+)\}\}")


def render_template(template: str, variables: Mapping[str, Any]) -> str:
    """Substitute `{{ name }}` placeholders.

    Unknown placeholders are left untouched.

    Args:
        template (str): the template text
        variables (Mapping[str, Any]): values by name

    Returns:
        str: the rendered text
    """

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1).strip()
        if name in variables:
            return str(variables[name])
        return match.group(0)

    return _PLACEHOLDER_RE.sub(substitute, template)


def apply_prompt_template(text: str, template_path: Path, variables: Mapping[str, Any] | None = None) -> str:
    """Render a template file around the prepared text.

    The text is available to the template as `{{ text }}` and `{{ content }}`.

    Args:
        text (str): the prepared text
        template_path (Path): template file
        variables (Mapping[str, Any] | None): extra variables

    Raises:
        SourceReadError: when the template cannot be read

    Returns:
        str: the rendered prompt
    """
    try:
        template = template_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SourceReadError(source=str(template_path), message="cannot read template") from e
    merged = {**(variables or {}), "text": text, "content": text}
    logger.debug("template_applied", template=str(template_path), variables=sorted(merged))
    return render_template(template, merged)


def parse_variables(raw: str | Mapping[str, Any] | None) -> dict[str, Any]:
    """Parse template variables given as a JSON object.

    Args:
        raw (str | Mapping[str, Any] | None): JSON text, an already parsed mapping, or None

    Raises:
        InvalidParameterError: when the value is not a JSON object

    Returns:
        dict[str, Any]: the variables
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidParameterError(parameter="variables", value=raw, message="variables must be JSON") from e
    if not isinstance(raw, dict):
        raise InvalidParameterError(parameter="variables", value=raw, message="variables must be a JSON object")
    return dict(raw)


def wrap_messages(text: str, system: str | None = None, user: str | None = None) -> str:
    """Frame the text with optional system and user messages.

    Args:
        text (str): the prepared text
        system (str | None): placed before the text as "SYSTEM: ..."
        user (str | None): placed after the text as "USER: ..."

    Returns:
        str: the framed text
    """
    if system:
        text = f"SYSTEM: {system}\n\n{text}"
    if user:
        text = f"{text}\n\nUSER: {user}"
    return text
