# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Pure text-scanning helpers for recovering structure from generated source.

Nothing here raises on malformed input: scanners return ``None`` or an empty
result and let the caller substitute a default.  All functions are free of side
effects so they can be exercised directly with arbitrary fragments.

The scanners understand just enough of Python and JavaScript/TypeScript lexing
to stay correct around string literals (single, double, triple and template
quotes, with escapes) and comments.
"""

from __future__ import annotations

from collections.abc import Iterator
import json
import re
from typing import Any, Final


PYTHON_COMMENTS: Final[tuple[str, ...]] = ("#",)
SCRIPT_COMMENTS: Final[tuple[str, ...]] = ("//", "/*")
ALL_COMMENTS: Final[tuple[str, ...]] = PYTHON_COMMENTS + SCRIPT_COMMENTS

_QUOTES: Final[str] = "'\"`"
_OPENERS: Final[dict[str, str]] = {"(": ")", "[": "]", "{": "}"}
_CLOSERS: Final[frozenset[str]] = frozenset(_OPENERS.values())
_STRING_PREFIXES: Final[frozenset[str]] = frozenset({"f", "r", "u", "b", "fr", "rf", "br", "rb"})
_LITERAL_WORDS: Final[dict[str, str]] = {
    "True": "true",
    "true": "true",
    "False": "false",
    "false": "false",
    "None": "null",
    "null": "null",
    "undefined": "null",
}
_SIMPLE_ESCAPES: Final[dict[str, str]] = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
    "\\": "\\",
    "'": "'",
    '"': '"',
    "`": "`",
    "\n": "",
}
_MAX_CODE_POINT: Final[int] = 0x10FFFF
_SURROGATE = re.compile(r"[\ud800-\udfff]")
_ESCAPE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|.)", re.DOTALL)
_KEYWORD_ARGUMENT = re.compile(r"\s*([A-Za-z_]\w*)\s*=(?!=)\s*(.*)\Z", re.DOTALL)
_OBJECT_MEMBER = re.compile(r"\s*([\"'`]?)([A-Za-z_$][\w$-]*)\1\s*:(.*)\Z", re.DOTALL)
_STRING_LITERAL = re.compile(r"\A\s*([A-Za-z]{0,2})([\"'`])", re.DOTALL)


# ---------------------------------------------------------------------------
# Lexing primitives
# ---------------------------------------------------------------------------


def string_end(text: str, start: int) -> int:
    """Return the index just past the string literal opening at ``start``.

    Unterminated literals end at the end of their line (or of the text for
    triple-quoted and template literals).
    """
    quote = text[start]
    if quote in "'\"" and text.startswith(quote * 3, start):
        closing = text.find(quote * 3, start + 3)
        return len(text) if closing < 0 else closing + 3
    index = start + 1
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == quote:
            return index + 1
        if char == "\n" and quote != "`":
            return index
        index += 1
    return len(text)


def comment_end(text: str, start: int, comments: tuple[str, ...] = ALL_COMMENTS) -> int | None:
    """Return the index past a comment starting at ``start``, or ``None``."""
    for marker in comments:
        if not text.startswith(marker, start):
            continue
        if marker == "/*":
            closing = text.find("*/", start + 2)
            return len(text) if closing < 0 else closing + 2
        newline = text.find("\n", start)
        return len(text) if newline < 0 else newline
    return None


def _skip_opaque(text: str, index: int, comments: tuple[str, ...]) -> int | None:
    if text[index] in _QUOTES:
        return string_end(text, index)
    return comment_end(text, index, comments)


def match_bracket(text: str, start: int, *, comments: tuple[str, ...] = ALL_COMMENTS) -> int | None:
    """Return the index of the bracket closing the one at ``start``.

    Returns ``None`` when ``start`` is not an opening bracket, when brackets are
    mismatched, or when the text ends first.
    """
    if start >= len(text) or text[start] not in _OPENERS:
        return None
    expected: list[str] = []
    index = start
    while index < len(text):
        skipped = _skip_opaque(text, index, comments)
        if skipped is not None:
            index = skipped
            continue
        char = text[index]
        if char in _OPENERS:
            expected.append(_OPENERS[char])
        elif char in _CLOSERS:
            if not expected or char != expected[-1]:
                return None
            expected.pop()
            if not expected:
                return index
        index += 1
    return None


def split_top_level(text: str, separator: str = ",", *, comments: tuple[str, ...] = ALL_COMMENTS) -> list[str]:
    """Split on ``separator`` where it is outside brackets, strings and comments."""
    parts: list[str] = []
    depth = 0
    begin = 0
    index = 0
    while index < len(text):
        skipped = _skip_opaque(text, index, comments)
        if skipped is not None:
            index = skipped
            continue
        char = text[index]
        if char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth = max(depth - 1, 0)
        elif char == separator and depth == 0:
            parts.append(text[begin:index])
            begin = index + 1
        index += 1
    parts.append(text[begin:])
    return [part.strip() for part in parts if part.strip()]


def iter_call_arguments(
    text: str, callee: str, *, comments: tuple[str, ...] = ALL_COMMENTS
) -> Iterator[tuple[re.Match[str], str]]:
    """Yield ``(match, inner_text)`` for each balanced call ``callee(...)``.

    ``callee`` is a regular expression matched at a word boundary; calls whose
    parentheses never balance are skipped.
    """
    pattern = re.compile(rf"\b(?:{callee})\s*\(")
    position = 0
    while True:
        match = pattern.search(text, position)
        if match is None:
            return
        opening = match.end() - 1
        closing = match_bracket(text, opening, comments=comments)
        if closing is None:
            position = match.end()
            continue
        yield match, text[opening + 1 : closing]
        position = closing + 1


def find_section(text: str, start: str, stop: str) -> str | None:
    """Return the text after the first ``start`` match up to the next ``stop`` match."""
    opening = re.search(start, text)
    if opening is None:
        return None
    rest = text[opening.end() :]
    closing = re.search(stop, rest)
    return rest if closing is None else rest[: closing.start()]


def find_bracketed(text: str, opener_pattern: str, *, comments: tuple[str, ...] = ALL_COMMENTS) -> str | None:
    """Return the inner text of the first bracket group whose opener ends ``opener_pattern``."""
    match = re.search(opener_pattern, text)
    if match is None:
        return None
    opening = match.end() - 1
    closing = match_bracket(text, opening, comments=comments)
    if closing is None:
        return None
    return text[opening + 1 : closing]


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------


def _code_point(value: int, token: str) -> str:
    return chr(value) if value <= _MAX_CODE_POINT else "\\" + token


def _replace_escape(match: re.Match[str]) -> str:
    token = match.group(1)
    if token.startswith("u{"):
        return _code_point(int(token[2:-1], 16), token)
    if token[0] in "ux" and len(token) > 1:
        return _code_point(int(token[1:], 16), token)
    return _SIMPLE_ESCAPES.get(token, "\\" + token)


def clean_text(text: str) -> str:
    """Join escaped surrogate pairs and replace lone surrogates with U+FFFD.

    Lone surrogates cannot be encoded as UTF-8 and would break serialization.
    """
    if not _SURROGATE.search(text):
        return text
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "replace")


def _clean_value(value: Any) -> Any:
    if isinstance(value, str):
        return clean_text(value)
    if isinstance(value, dict):
        return {clean_text(key): _clean_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_clean_value(item) for item in value]
    return value


def _unquote(literal: str, *, raw: bool = False) -> str:
    quote = literal[0]
    if quote in "'\"" and literal.startswith(quote * 3):
        inner = literal[3:-3] if literal.endswith(quote * 3) and len(literal) >= 6 else literal[3:]
    else:
        inner = literal[1:-1] if len(literal) >= 2 and literal.endswith(quote) else literal[1:]
    return clean_text(inner if raw else _ESCAPE.sub(_replace_escape, inner))


def decode_string(expression: str) -> str | None:
    """Decode a string literal expression (with optional ``f``/``r`` prefix).

    Returns ``None`` if the expression is not a single string literal.
    Interpolations (``{x}`` or ``${x}``) are kept verbatim.
    """
    match = _STRING_LITERAL.match(expression)
    if match is None or match.group(1).lower() not in _STRING_PREFIXES | {""}:
        return None
    start = match.start(2)
    end = string_end(expression, start)
    if expression[end:].strip():
        return None
    return _unquote(expression[start:end], raw="r" in match.group(1).lower())


def to_json_text(literal: str) -> str:
    """Rewrite a Python or JavaScript literal into JSON text.

    Converts quote styles, ``True``/``False``/``None``/``undefined``, quotes
    bare object keys, and drops comments and trailing commas.  The result is not
    guaranteed to be valid JSON; :func:`parse_literal` handles the failure.
    """
    out: list[str] = []
    index = 0
    length = len(literal)
    while index < length:
        char = literal[index]
        if char in _QUOTES:
            end = string_end(literal, index)
            out.append(json.dumps(_unquote(literal[index:end])))
            index = end
            continue
        skipped = comment_end(literal, index)
        if skipped is not None:
            index = skipped
            continue
        if char.isalpha() or char in "_$":
            end = index
            while end < length and (literal[end].isalnum() or literal[end] in "_$"):
                end += 1
            word = literal[index:end]
            if end < length and literal[end] in "'\"" and word.lower() in _STRING_PREFIXES:
                index = end
                continue
            lookahead = end
            while lookahead < length and literal[lookahead] in " \t\r\n":
                lookahead += 1
            if lookahead < length and literal[lookahead] == ":":
                out.append(json.dumps(word))
            else:
                out.append(_LITERAL_WORDS.get(word, word))
            index = end
            continue
        if char == ",":
            lookahead = index + 1
            while lookahead < length:
                if literal[lookahead] in " \t\r\n":
                    lookahead += 1
                    continue
                skipped = comment_end(literal, lookahead)
                if skipped is None:
                    break
                lookahead = skipped
            if lookahead < length and literal[lookahead] in "}]":
                index += 1
                continue
        out.append(char)
        index += 1
    return "".join(out)


def parse_literal(text: str) -> Any | None:
    """Evaluate a literal structurally; ``None`` when it cannot be understood."""
    candidate = text.strip()
    if not candidate:
        return None
    try:
        return _clean_value(json.loads(candidate))
    except (ValueError, RecursionError):
        pass
    try:
        return _clean_value(json.loads(to_json_text(candidate)))
    except (ValueError, RecursionError):
        return None


def _strip_leading_comments(part: str, comments: tuple[str, ...]) -> str:
    index = 0
    while index < len(part):
        if part[index] in " \t\r\n":
            index += 1
            continue
        skipped = comment_end(part, index, comments)
        if skipped is None:
            break
        index = skipped
    return part[index:]


def parse_keyword_arguments(text: str) -> dict[str, str]:
    """Map ``key=value`` call arguments to their raw value text.

    Positional arguments are ignored; the last duplicate wins.
    """
    arguments: dict[str, str] = {}
    for part in split_top_level(text, comments=PYTHON_COMMENTS):
        match = _KEYWORD_ARGUMENT.match(_strip_leading_comments(part, PYTHON_COMMENTS))
        if match is not None:
            arguments[match.group(1)] = match.group(2).strip()
    return arguments


def parse_object_members(text: str) -> dict[str, str]:
    """Map ``key: value`` object-literal members to their raw value text."""
    members: dict[str, str] = {}
    for part in split_top_level(text, comments=SCRIPT_COMMENTS):
        match = _OBJECT_MEMBER.match(_strip_leading_comments(part, SCRIPT_COMMENTS))
        if match is not None:
            members[match.group(2)] = match.group(3).strip()
    return members


def positional_arguments(text: str, *, comments: tuple[str, ...] = ALL_COMMENTS) -> list[str]:
    """Return the call arguments that are not ``key=value`` pairs, in order."""
    return [part for part in split_top_level(text, comments=comments) if _KEYWORD_ARGUMENT.match(part) is None]


__all__ = [
    "ALL_COMMENTS",
    "PYTHON_COMMENTS",
    "SCRIPT_COMMENTS",
    "clean_text",
    "comment_end",
    "decode_string",
    "find_bracketed",
    "find_section",
    "iter_call_arguments",
    "match_bracket",
    "parse_keyword_arguments",
    "parse_literal",
    "parse_object_members",
    "positional_arguments",
    "split_top_level",
    "string_end",
    "to_json_text",
]
