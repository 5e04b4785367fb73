"""Pure-function ``{{key}}`` substitution for node templates.

This module is intentionally free of external dependencies (openai,
aioodbc, etc.) so that it can be unit-tested without mocking.
"""

import json
import re
from collections.abc import Callable, Mapping
from typing import Any

# {{ name }} with optional inner whitespace; word characters only
_PLACEHOLDER_RE: re.Pattern[str] = re.compile(r"{{\s*(\w+)\s*}}")

Lookup = Callable[[str], tuple[bool, Any]]


def stringify(value: Any) -> str:
    """Render a context value the way it is inlined into templates.

    Args:
        value: Any context value.

    Returns:
        Strings unchanged, ``True``/``False`` for booleans, compact JSON for
        dicts and lists, ``str()`` for everything else, ``""`` for ``None``.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return str(value)


def interpolate(template: str | None, context: Mapping[str, Any] | Lookup) -> str:
    """Replace every ``{{key}}`` whose key is known, in a single pass.

    Replacement text is never rescanned, and unknown keys are left exactly
    as written, so the function is idempotent on unmatched placeholders.

    Args:
        template: Template text (``None`` is treated as empty).
        context: Mapping of key → value, or a lookup callable returning
            ``(found, value)``.

    Returns:
        The interpolated text.
    """
    if not template:
        return ""

    if callable(context):
        lookup = context
    else:
        mapping = context

        def lookup(key: str) -> tuple[bool, Any]:
            if key in mapping:
                return True, mapping[key]
            return False, None

    def _replace(match: re.Match[str]) -> str:
        found, value = lookup(match.group(1))
        return stringify(value) if found else match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, template)
