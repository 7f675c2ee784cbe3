"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Parse and render the JavaScript object literals found in Tailwind config
modules. Literal values (objects, arrays, strings, numbers, booleans, null)
become Python values; ``require("x")`` becomes :class:`JsRequire`; anything
else (functions, member expressions, template strings with interpolation,
spreads) is kept verbatim as :class:`JsExpression` / :class:`JsSpread`.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from registry_preview.storage.errors import JsLiteralError

CONFIG_HEADER = "/** @type {import('tailwindcss').Config} */"

_IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*")
_NUMBER = re.compile(
    r"0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII
)
_BARE_KEY = re.compile(r"^[A-Za-z_$][\w$]*$")
_PUNCTUATION = ("...", "===", "!==", "=>", "==", "!=", "&&", "||", "??", "?.")
_KEYWORDS = {"true": True, "false": False, "null": None}
_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}
_VALUE_END = {",", "}", "]", ";", ")"}
_INLINE_LIMIT = 72
_MAX_NESTING = 64


@dataclass(frozen=True)
class JsRequire:
    """A ``require("module")`` call, typically a plugin."""

    module: str


@dataclass(frozen=True)
class JsExpression:
    """Source text of an expression that is not a plain literal."""

    source: str


@dataclass(frozen=True)
class JsSpread:
    """A ``...expression`` entry inside an object or array literal."""

    source: str


class _Token(NamedTuple):
    kind: str
    value: Any
    start: int
    end: int


_MISSING = object()


def _read_string(source: str, index: int) -> Tuple[_Token, int]:
    quote = source[index]
    position = index + 1
    chunks: List[str] = []
    interpolated = False
    length = len(source)
    while position < length:
        char = source[position]
        if char == "\\":
            position += 1
            if position >= length:
                break
            escaped = source[position]
            if escaped == "\n":
                position += 1
            elif escaped == "u":
                if source.startswith("{", position + 1):
                    close = source.find("}", position)
                    digits = source[position + 2:close] if close != -1 else ""
                    position = close + 1 if close != -1 else length
                else:
                    digits = source[position + 1:position + 5]
                    position += 5
                try:
                    chunks.append(chr(int(digits, 16)))
                except (ValueError, OverflowError) as exc:
                    raise JsLiteralError(
                        f"Invalid unicode escape at offset {position}"
                    ) from exc
            elif escaped == "x":
                digits = source[position + 1:position + 3]
                try:
                    chunks.append(chr(int(digits, 16)))
                except (ValueError, OverflowError) as exc:
                    raise JsLiteralError(
                        f"Invalid hex escape at offset {position}"
                    ) from exc
                position += 3
            else:
                chunks.append(_ESCAPES.get(escaped, escaped))
                position += 1
            continue
        if char == quote:
            end = position + 1
            if interpolated:
                return _Token("template", source[index:end], index, end), end
            return _Token("string", "".join(chunks), index, end), end
        if quote == "`" and source.startswith("${", position):
            interpolated = True
            depth = 0
            while position < length:
                if source[position] == "{":
                    depth += 1
                elif source[position] == "}":
                    depth -= 1
                    if depth == 0:
                        break
                position += 1
            position += 1
            continue
        if char == "\n" and quote != "`":
            break
        chunks.append(char)
        position += 1
    raise JsLiteralError(f"Unterminated string starting at offset {index}")


def _tokenize(source: str) -> List[_Token]:
    tokens: List[_Token] = []
    position = 0
    length = len(source)
    while position < length:
        char = source[position]
        if char.isspace():
            position += 1
            continue
        if source.startswith("//", position):
            newline = source.find("\n", position)
            position = length if newline == -1 else newline + 1
            continue
        if source.startswith("/*", position):
            close = source.find("*/", position + 2)
            if close == -1:
                raise JsLiteralError("Unterminated block comment")
            position = close + 2
            continue
        if char in "'\"`":
            token, position = _read_string(source, position)
            tokens.append(token)
            continue
        match = None
        if char in ".0123456789":
            match = _NUMBER.match(source, position)
        if match is not None:
            text = match.group(0)
            try:
                if text[:2].lower() == "0x":
                    number: Any = int(text, 16)
                elif any(marker in text for marker in ".eE"):
                    number = float(text)
                else:
                    number = int(text)
            except ValueError as exc:
                raise JsLiteralError(
                    f"Invalid number literal at offset {position}"
                ) from exc
            tokens.append(_Token("number", number, position, match.end()))
            position = match.end()
            continue
        match = _IDENTIFIER.match(source, position)
        if match:
            tokens.append(
                _Token("ident", match.group(0), position, match.end())
            )
            position = match.end()
            continue
        for punct in _PUNCTUATION:
            if source.startswith(punct, position):
                break
        else:
            punct = char
        tokens.append(
            _Token("punct", punct, position, position + len(punct))
        )
        position += len(punct)
    return tokens


class _Parser:
    def __init__(self, source: str, tokens: List[_Token]) -> None:
        self._source = source
        self._tokens = tokens
        self.position = 0
        self._nesting = 0

    def peek(self, offset: int = 0) -> Optional[_Token]:
        index = self.position + offset
        if index < len(self._tokens):
            return self._tokens[index]
        return None

    def advance(self) -> _Token:
        token = self.peek()
        if token is None:
            raise JsLiteralError("Unexpected end of config module")
        self.position += 1
        return token

    def at_punct(self, value: str, offset: int = 0) -> bool:
        token = self.peek(offset)
        return token is not None and token.kind == "punct" and token.value == value

    def expect_punct(self, value: str) -> _Token:
        token = self.advance()
        if token.kind != "punct" or token.value != value:
            raise JsLiteralError(
                f"Expected '{value}' at offset {token.start}, "
                f"found {token.value!r}"
            )
        return token

    def parse_value(self) -> Any:
        start = self.position
        value = self._parse_literal()
        if value is not _MISSING and self._at_value_end():
            return value
        self.position = start
        return JsExpression(self._capture())

    def parse_object(self) -> Dict[Any, Any]:
        self._enter(self.expect_punct("{"))
        result: Dict[Any, Any] = {}
        while not self.at_punct("}"):
            token = self.advance()
            if token.kind == "punct" and token.value == "...":
                result[JsSpread(self._capture())] = None
            elif token.kind in ("ident", "string", "number"):
                key = (
                    token.value
                    if token.kind != "number"
                    else self._source[token.start:token.end]
                )
                if self.at_punct(":"):
                    self.advance()
                    result[key] = self.parse_value()
                elif token.kind == "ident" and (
                    self.at_punct(",") or self.at_punct("}")
                ):
                    result[key] = JsExpression(key)
                else:
                    raise JsLiteralError(
                        f"Unsupported object member '{key}' at offset "
                        f"{token.start}"
                    )
            else:
                raise JsLiteralError(
                    f"Unsupported object key {token.value!r} at offset "
                    f"{token.start}"
                )
            if self.at_punct(","):
                self.advance()
            elif not self.at_punct("}"):
                found = self.peek()
                raise JsLiteralError(
                    "Expected ',' or '}' "
                    + (f"at offset {found.start}" if found else "before end")
                )
        self.advance()
        self._nesting -= 1
        return result

    def parse_array(self) -> List[Any]:
        self._enter(self.expect_punct("["))
        result: List[Any] = []
        while not self.at_punct("]"):
            if self.at_punct("..."):
                self.advance()
                result.append(JsSpread(self._capture()))
            else:
                result.append(self.parse_value())
            if self.at_punct(","):
                self.advance()
            elif not self.at_punct("]"):
                found = self.peek()
                raise JsLiteralError(
                    "Expected ',' or ']' "
                    + (f"at offset {found.start}" if found else "before end")
                )
        self.advance()
        self._nesting -= 1
        return result

    def _enter(self, token: _Token) -> None:
        self._nesting += 1
        if self._nesting > _MAX_NESTING:
            raise JsLiteralError(
                f"Literal nested deeper than {_MAX_NESTING} levels at offset "
                f"{token.start}"
            )

    def _parse_literal(self) -> Any:
        token = self.peek()
        if token is None:
            raise JsLiteralError("Unexpected end of config module")
        if token.kind == "punct":
            if token.value == "{":
                return self.parse_object()
            if token.value == "[":
                return self.parse_array()
            following = self.peek(1)
            if token.value == "-" and following and following.kind == "number":
                self.position += 2
                return -following.value
            return _MISSING
        if token.kind in ("string", "number"):
            self.position += 1
            return token.value
        if token.kind == "ident":
            if token.value in _KEYWORDS:
                self.position += 1
                return _KEYWORDS[token.value]
            module = self.peek(2)
            if (
                token.value == "require"
                and self.at_punct("(", 1)
                and module is not None
                and module.kind == "string"
                and self.at_punct(")", 3)
            ):
                self.position += 4
                return JsRequire(module.value)
        return _MISSING

    def _at_value_end(self) -> bool:
        token = self.peek()
        return token is None or (
            token.kind == "punct" and token.value in _VALUE_END
        )

    def _capture(self) -> str:
        first = self.peek()
        last: Optional[_Token] = None
        depth = 0
        while True:
            token = self.peek()
            if token is None:
                break
            if token.kind == "punct":
                if token.value in ("(", "[", "{"):
                    depth += 1
                elif token.value in (")", "]", "}"):
                    if depth == 0:
                        break
                    depth -= 1
                elif token.value in (",", ";") and depth == 0:
                    break
            last = token
            self.position += 1
        if first is None or last is None:
            raise JsLiteralError("Expected an expression")
        return self._source[first.start:last.end]


def _find_export(tokens: List[_Token]) -> Optional[int]:
    for index, token in enumerate(tokens):
        if token.kind != "ident":
            continue
        window = [(t.kind, t.value) for t in tokens[index:index + 4]]
        if window == [
            ("ident", "module"),
            ("punct", "."),
            ("ident", "exports"),
            ("punct", "="),
        ]:
            return index + 4
        if window[:2] == [("ident", "export"), ("ident", "default")]:
            return index + 2
    return None


def _find_declaration(tokens: List[_Token], name: str) -> Optional[int]:
    for index, token in enumerate(tokens[:-1]):
        following = tokens[index + 1]
        if (
            token.kind == "ident"
            and token.value in ("const", "let", "var")
            and following.kind == "ident"
            and following.value == name
        ):
            # Skip an optional type annotation up to the '='.
            for offset in range(index + 2, len(tokens)):
                candidate = tokens[offset]
                if candidate.kind == "punct" and candidate.value == "=":
                    return offset + 1
                if candidate.kind == "punct" and candidate.value == ";":
                    break
    return None


def parse_config_module(source: str) -> Dict[Any, Any]:
    """Return the object exported by a Tailwind config module.

    Accepts ``module.exports = {...}``, ``export default {...}``, an
    exported ``const`` / ``let`` / ``var`` binding, or a bare object literal.
    """
    tokens = _tokenize(source)
    if not tokens:
        raise JsLiteralError("Tailwind config is empty")

    start = _find_export(tokens)
    if start is None:
        if not (tokens[0].kind == "punct" and tokens[0].value == "{"):
            raise JsLiteralError("Tailwind config does not export an object")
        start = 0
    elif start < len(tokens) and tokens[start].kind == "ident":
        name = tokens[start].value
        declared = _find_declaration(tokens, name)
        if declared is None:
            raise JsLiteralError(
                f"Exported binding '{name}' is not declared in the module"
            )
        start = declared

    if start >= len(tokens) or tokens[start][:2] != ("punct", "{"):
        raise JsLiteralError("Tailwind config must export an object literal")
    parser = _Parser(source, tokens)
    parser.position = start
    return parser.parse_object()


def _render_key(key: Any) -> str:
    text = str(key)
    if _BARE_KEY.match(text) or re.match(r"^\d+$", text):
        return text
    return json.dumps(text, ensure_ascii=False)


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(
        value, (str, int, float, bool, JsRequire)
    )


def render_js(value: Any, indent: int = 0) -> str:
    """Render ``value`` as JavaScript source with two-space indentation."""
    pad = "  " * (indent + 1)
    closing = "  " * indent
    if isinstance(value, dict):
        if not value:
            return "{}"
        lines = []
        for key, item in value.items():
            if isinstance(key, JsSpread):
                lines.append(f"{pad}...{key.source},")
            else:
                lines.append(
                    f"{pad}{_render_key(key)}: {render_js(item, indent + 1)},"
                )
        return "{\n" + "\n".join(lines) + f"\n{closing}}}"
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        rendered = [render_js(item, indent + 1) for item in value]
        inline = "[" + ", ".join(rendered) + "]"
        if all(_is_scalar(item) for item in value) and len(inline) <= _INLINE_LIMIT:
            return inline
        return (
            "[\n"
            + "\n".join(f"{pad}{item}," for item in rendered)
            + f"\n{closing}]"
        )
    if isinstance(value, JsSpread):
        return f"...{value.source}"
    if isinstance(value, JsExpression):
        return value.source
    if isinstance(value, JsRequire):
        return f"require({json.dumps(value.module)})"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return repr(value)
    return json.dumps(str(value), ensure_ascii=False)


def render_config_module(config: Dict[Any, Any]) -> str:
    """Render ``config`` as a CommonJS Tailwind config module."""
    return f"{CONFIG_HEADER}\nmodule.exports = {render_js(config)}\n"
