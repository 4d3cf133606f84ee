"""Content-line helpers shared by the calendar parser and validator."""

import re
from typing import NamedTuple, Optional

_NEWLINE_RE = re.compile(r"\r\n|\n|\r")
_TEXT_ESCAPE_RE = re.compile(r"\\([\\,;:nN])")


class ContentLine(NamedTuple):
    """One unfolded ``NAME;PARAM=VALUE:value`` line."""

    name: str
    params: dict[str, str]
    value: str


def unfold_lines(text: str) -> list[str]:
    """Split a document into logical lines, joining RFC 5545 folds.

    A physical line starting with a space or tab continues the previous one;
    the single leading whitespace character is removed. Blank lines are dropped.
    """
    lines: list[str] = []
    for raw_line in _NEWLINE_RE.split(text or ""):
        if raw_line.startswith((" ", "\t")) and lines:
            lines[-1] += raw_line[1:]
            continue
        lines.append(raw_line)

    return [line.strip() for line in lines if line.strip()]


def _split_outside_quotes(text: str, separator: str) -> list[str]:
    parts = []
    current = []
    in_quotes = False
    for ch in text:
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == separator and not in_quotes:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


def _value_separator_index(line: str) -> int:
    in_quotes = False
    for i, ch in enumerate(line):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == ":" and not in_quotes:
            return i
    return -1


def split_property(line: str) -> Optional[ContentLine]:
    """Split an unfolded line into name, parameters and raw value.

    Colons inside quoted parameter values do not end the parameter section.
    Parameter names are upper-cased and surrounding quotes are removed from
    their values.

    Returns:
        ContentLine, or None when the line has no value separator or no name
    """
    index = _value_separator_index(line)
    if index <= 0:
        return None

    head, value = line[:index], line[index + 1 :]
    name, *raw_params = _split_outside_quotes(head, ";")
    name = name.strip().upper()
    if not name:
        return None

    params: dict[str, str] = {}
    for raw_param in raw_params:
        if "=" not in raw_param:
            continue
        key, param_value = raw_param.split("=", 1)
        params[key.strip().upper()] = param_value.strip().strip('"')

    return ContentLine(name, params, value)


def unescape_text(value: str) -> str:
    r"""Reverse TEXT escaping: ``\n``/``\N`` to newline, ``\,`` ``\;`` ``\:`` ``\\`` to the literal."""
    return _TEXT_ESCAPE_RE.sub(lambda m: "\n" if m.group(1) in "nN" else m.group(1), value)
