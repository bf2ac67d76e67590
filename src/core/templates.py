"""Message template rendering.

Templates use ``{name}`` placeholders. Bound names are substituted; any other
placeholder is left in the text as-is so a broken template shows up as
visible placeholder text instead of failing the send.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True)
class RenderResult:
    text: str
    substituted: tuple[str, ...] = ()
    passthrough: tuple[str, ...] = ()   # placeholders with no binding, left verbatim


def render(template: str, bindings: Mapping[str, object]) -> RenderResult:
    substituted: list[str] = []
    passthrough: list[str] = []

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name in bindings:
            substituted.append(name)
            return str(bindings[name])
        passthrough.append(name)
        return match.group(0)

    text = _PLACEHOLDER.sub(_replace, template)
    return RenderResult(text=text, substituted=tuple(substituted), passthrough=tuple(passthrough))


def first_name(name: str) -> str:
    """First whitespace-separated token of a full name ("" for a blank name)."""
    parts = name.split()
    return parts[0] if parts else ""
