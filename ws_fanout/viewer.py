"""
Viewer rendering contract.

The viewer displays each delivered payload as one ``Label: value`` line per
top-level key:

- labels: the key split on ``-``, each word capitalized, joined by spaces
  (``call-id`` → ``Call Id``)
- values: scalars as-is, objects and arrays as 2-space indented JSON

Producers that change the payload shape must keep it a mapping for the
viewer to stay readable.
"""

from __future__ import annotations

import json
from typing import Any

from ws_fanout.components.events.types import normalize_numbers


def format_label(key: str) -> str:
    """Turn a hyphenated key into a human-readable label."""
    return " ".join(word[:1].upper() + word[1:] for word in key.split("-"))


def format_value(value: Any) -> str:
    """Render one value the way the viewer does."""
    value = normalize_numbers(value)
    if isinstance(value, (dict, list)) or value is None:
        return json.dumps(value, indent=2, ensure_ascii=False)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def format_message(message: Any) -> str:
    """
    Render a whole payload.

    Arrays are rendered with their indexes as keys; scalars are returned as
    their string form.
    """
    if isinstance(message, dict):
        items = message.items()
    elif isinstance(message, list):
        items = ((str(index), value) for index, value in enumerate(message))
    else:
        return format_value(message)

    return "".join(f"{format_label(str(key))}: {format_value(value)}\n" for key, value in items)
