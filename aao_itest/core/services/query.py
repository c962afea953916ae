"""
Structured value query — read fields out of loosely-typed documents.

Control-plane and cloud responses are nested dicts/lists. Callers need
to tell "the field is not there" apart from "the field is there but
empty", so every lookup returns either ``Present(value)`` or the
``ABSENT`` sentinel. A lookup never raises.

Selector syntax::

    spec.byoc                         plain keys (leading "." allowed)
    items[0]                          list index
    spec.customTags[*].key            every element -> list
    spec.customTags[key=test-team].value
                                      first element whose field matches
    data["aws_access_key_id"]         quoted key (dots allowed inside)

Filter values may be quoted. Non-string fields are compared as text,
with booleans rendered ``true`` / ``false`` the way jq prints them.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Result types
# ═══════════════════════════════════════════════════════════════════


class _Absent:
    """Sentinel for a selector that did not resolve."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

    @property
    def present(self) -> bool:
        return False


ABSENT = _Absent()


@dataclass(frozen=True)
class Present:
    """A selector resolved; ``value`` may be empty, zero, false or null."""

    value: Any

    @property
    def present(self) -> bool:
        return True

    def __bool__(self) -> bool:
        return True


QueryResult = Present | _Absent


# ═══════════════════════════════════════════════════════════════════
#  Selector parsing
# ═══════════════════════════════════════════════════════════════════


class SelectorError(ValueError):
    """Raised for a selector that cannot be parsed (a programming error)."""


@dataclass(frozen=True)
class _Key:
    name: str


@dataclass(frozen=True)
class _Index:
    position: int


@dataclass(frozen=True)
class _Each:
    pass


@dataclass(frozen=True)
class _Filter:
    field: str
    value: str


_Step = _Key | _Index | _Each | _Filter

_BRACKET_RE = re.compile(r"\[([^\]]*)\]")
_QUOTED_RE = re.compile(r"""^(["'])(.*)\1$""")


def _unquote(text: str) -> str:
    text = text.strip()
    match = _QUOTED_RE.match(text)
    return match.group(2) if match else text


def _split_top_level(selector: str) -> list[str]:
    """Split on dots that are not inside brackets or quotes."""
    parts: list[str] = []
    current: list[str] = []
    depth = 0
    quote = ""
    for ch in selector:
        if quote:
            current.append(ch)
            if ch == quote:
                quote = ""
            continue
        if ch in "\"'" and depth:
            quote = ch
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        elif ch == "." and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


def _parse_bracket(body: str, selector: str) -> _Step:
    body = body.strip()
    if body == "*":
        return _Each()
    if re.fullmatch(r"-?\d+", body):
        return _Index(int(body))
    if _QUOTED_RE.match(body):
        return _Key(_unquote(body))
    if "=" in body:
        field_name, _, value = body.partition("=")
        field_name = field_name.strip()
        if not field_name:
            raise SelectorError(f"Empty filter field in {selector!r}")
        return _Filter(field_name, _unquote(value))
    raise SelectorError(f"Cannot parse [{body}] in {selector!r}")


@lru_cache(maxsize=256)
def parse_selector(selector: str) -> tuple[_Step, ...]:
    """Parse a selector into lookup steps.

    Raises:
        SelectorError: If the selector is malformed.
    """
    text = selector.strip()
    if text.startswith("."):
        text = text[1:]
    if not text:
        return ()

    steps: list[_Step] = []
    for part in _split_top_level(text):
        head, bracket, rest = part.partition("[")
        if head:
            steps.append(_Key(head))
        elif not bracket:
            raise SelectorError(f"Empty path segment in {selector!r}")
        if bracket:
            brackets = "[" + rest
            consumed = 0
            for match in _BRACKET_RE.finditer(brackets):
                if match.start() != consumed:
                    raise SelectorError(f"Unexpected text in {selector!r}")
                steps.append(_parse_bracket(match.group(1), selector))
                consumed = match.end()
            if consumed != len(brackets):
                raise SelectorError(f"Unbalanced brackets in {selector!r}")
    return tuple(steps)


# ═══════════════════════════════════════════════════════════════════
#  Evaluation
# ═══════════════════════════════════════════════════════════════════


def as_text(value: Any) -> str:
    """Render a scalar the way ``jq -r`` prints it."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _apply(step: _Step, node: Any) -> QueryResult:
    if isinstance(step, _Key):
        if isinstance(node, dict) and step.name in node:
            return Present(node[step.name])
        return ABSENT

    if not isinstance(node, list):
        return ABSENT

    if isinstance(step, _Index):
        try:
            return Present(node[step.position])
        except IndexError:
            return ABSENT

    if isinstance(step, _Each):
        return Present(list(node))

    for element in node:
        if (
            isinstance(element, dict)
            and step.field in element
            and as_text(element[step.field]) == step.value
        ):
            return Present(element)
    return ABSENT


def query(document: Any, selector: str) -> QueryResult:
    """Resolve ``selector`` against ``document``.

    Returns ``Present(value)`` or ``ABSENT``. A step after ``[*]`` is
    mapped over the elements, dropping the ones where it is absent.
    """
    current: QueryResult = Present(document)
    fanned_out = False

    for step in parse_selector(selector):
        if not isinstance(current, Present):
            return ABSENT

        if fanned_out:
            mapped: list[Any] = []
            for element in current.value:
                hit = _apply(step, element)
                if isinstance(hit, Present):
                    mapped.append(hit.value)
            current = Present(mapped)
            continue

        current = _apply(step, current.value)
        if isinstance(step, _Each):
            fanned_out = True

    return current


def query_value(document: Any, selector: str, default: Any = None) -> Any:
    """Shortcut: the resolved value, or ``default`` when absent."""
    result = query(document, selector)
    return result.value if isinstance(result, Present) else default


def count(result: QueryResult) -> int:
    """Number of elements in a resolved list/mapping; 0 when absent or scalar."""
    if isinstance(result, Present) and isinstance(result.value, (list, dict)):
        return len(result.value)
    return 0


def is_empty(result: QueryResult) -> bool:
    """True when absent, null, or an empty string / collection."""
    if not isinstance(result, Present):
        return True
    value = result.value
    if value is None:
        return True
    if isinstance(value, (str, list, dict)):
        return len(value) == 0
    return False


def tag_map(
    document: Any,
    selector: str,
    *,
    key_field: str = "key",
    value_field: str = "value",
) -> dict[str, Any]:
    """Turn a ``[{key, value}, ...]`` list into a mapping.

    The first occurrence of a key wins, matching what a ``[key=...]``
    filter would return. Malformed entries are skipped.
    """
    result = query(document, selector)
    tags: dict[str, Any] = {}
    if not isinstance(result, Present) or not isinstance(result.value, list):
        return tags
    for entry in result.value:
        if isinstance(entry, dict) and key_field in entry:
            tags.setdefault(as_text(entry[key_field]), entry.get(value_field))
    return tags


def decode_base64(result: QueryResult) -> QueryResult:
    """Base64-decode a resolved string (Secret ``data`` values).

    Undecodable input yields ``ABSENT`` rather than an exception.
    """
    if not isinstance(result, Present) or not isinstance(result.value, str):
        return ABSENT
    try:
        raw = base64.b64decode(result.value, validate=True)
        return Present(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.debug("Value is not valid base64 text")
        return ABSENT
