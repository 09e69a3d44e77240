"""
Runtime string templates.

A template is an ordered sequence of fixed fragments separated by slots.
Slots are keyed by a zero-based positional index (int) or a name (str):

    greet = template("Hello, ", 0, "! How are you today?")
    greet("John")                        # "Hello, John! How are you today?"

    url = template("https://example.com?q=", "query")
    url({"query": "hello+world"})        # "https://example.com?q=hello+world"

Arguments are positional values optionally followed by a trailing mapping
used for named slots. Missing values substitute as an empty string.
"""
from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence, Union

SlotKey = Union[int, str]


def _render(value: Any) -> str:
    return "" if value is None else str(value)


class Template:
    """Fragments and slot keys, interleaved: fragments[0] key[0] fragments[1] ..."""

    def __init__(self, fragments: Sequence[str], keys: Sequence[SlotKey]):
        if len(fragments) != len(keys) + 1:
            raise ValueError("A template needs exactly one more fragment than slots")
        for key in keys:
            if isinstance(key, bool) or not isinstance(key, (int, str)):
                raise TypeError(f"Slot keys must be int or str, got {key!r}")
        self.fragments = tuple(fragments)
        self.keys = tuple(keys)

    def __call__(self, *values: Any) -> str:
        named = values[-1] if values and isinstance(values[-1], Mapping) else {}
        parts = [self.fragments[0]]
        for key, fragment in zip(self.keys, self.fragments[1:]):
            if isinstance(key, int):
                value = values[key] if 0 <= key < len(values) else None
            else:
                value = named.get(key)
            parts.append(_render(value))
            parts.append(fragment)
        return "".join(parts)

    def __repr__(self) -> str:
        return f"Template(fragments={self.fragments!r}, keys={self.keys!r})"


def template(*parts: Any) -> Template:
    """
    Build a template from alternating fragments and slot keys.

    Even positions are literal text, odd positions are slot keys. A trailing
    slot gets an implicit empty fragment.
    """
    fragments = list(parts[0::2])
    keys = list(parts[1::2])
    if len(fragments) == len(keys):
        fragments.append("")
    for fragment in fragments:
        if not isinstance(fragment, str):
            raise TypeError(f"Template fragments must be str, got {fragment!r}")
    return Template(fragments, keys)


def join(*templates: Callable[..., str]) -> Callable[..., str]:
    """Combine templates: each receives the same arguments, outputs are concatenated."""
    def composite(*values: Any) -> str:
        return "".join(t(*values) for t in templates)
    return composite
