"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Statement-level merging of global stylesheets. Stylesheets are split into
top-level statements (``@layer`` blocks are opened and merged per layer),
deduplicated by what they define, and re-emitted with consistent
indentation.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import (Any, Dict, Iterator, List, Optional, Sequence, Tuple)

from registry_preview.storage.errors import CssSyntaxError
from registry_preview.styles.conflicts import ConflictPolicy, merge_entry

_LOGGER = logging.getLogger(__name__)

_AT_KEYWORD = re.compile(r"@([\w-]+)")
_STRING = re.compile(r"""("(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*')""")
_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION_SPACE = re.compile(r"\s*([{};,>])\s*")
_DIRECTIVE_RANK = {"charset": 0, "import": 1}
_KEYFRAMES = {"keyframes", "-webkit-keyframes"}
_INDENT = "  "


@dataclass(frozen=True)
class CssStatement:
    """A top-level statement: ``prelude;`` or ``prelude { body }``."""

    prelude: str
    body: Optional[str] = None

    @property
    def is_block(self) -> bool:
        return self.body is not None

    @property
    def at_keyword(self) -> Optional[str]:
        match = _AT_KEYWORD.match(self.prelude)
        return match.group(1).lower() if match else None

    @property
    def at_params(self) -> str:
        match = _AT_KEYWORD.match(self.prelude)
        if not match:
            return ""
        return _squash(self.prelude[match.end():])

    def render(self) -> str:
        if self.body is None:
            return f"{self.prelude};"
        return f"{self.prelude} {{{self.body}}}"


def _outside_strings(text: str, pattern: re.Pattern, replacement: str) -> str:
    parts = _STRING.split(text)
    for index in range(0, len(parts), 2):
        parts[index] = pattern.sub(replacement, parts[index])
    return "".join(parts)


def _squash(text: str) -> str:
    return _outside_strings(text, _WHITESPACE, " ").strip()


def _compact(text: str) -> str:
    return _outside_strings(_squash(text), _PUNCTUATION_SPACE, r"\1")


def _skip_string(text: str, index: int) -> int:
    quote = text[index]
    position = index + 1
    while position < len(text):
        char = text[position]
        if char == "\\":
            position += 2
            continue
        if char == quote:
            return position + 1
        if char == "\n":
            break
        position += 1
    raise CssSyntaxError(f"Unterminated string starting at offset {index}")


def _structural(text: str) -> Iterator[Tuple[int, str]]:
    """Yield ``(index, char)`` for every character outside string literals."""
    position = 0
    while position < len(text):
        char = text[position]
        if char in "'\"":
            position = _skip_string(text, position)
            continue
        yield position, char
        position += 1


def strip_comments(css: str) -> str:
    chunks: List[str] = []
    position = 0
    start = 0
    while position < len(css):
        char = css[position]
        if char in "'\"":
            position = _skip_string(css, position)
            continue
        if css.startswith("/*", position):
            close = css.find("*/", position + 2)
            if close == -1:
                raise CssSyntaxError("Unterminated comment")
            chunks.append(css[start:position])
            position = start = close + 2
            continue
        position += 1
    chunks.append(css[start:])
    return "".join(chunks)


def split_statements(css: str) -> List[CssStatement]:
    """Split ``css`` into top-level statements, comments removed.

    Raises :class:`CssSyntaxError` on unbalanced braces or strings.
    """
    text = strip_comments(css)
    statements: List[CssStatement] = []
    start = 0
    depth = 0
    parens = 0
    prelude = ""
    body_start = 0
    for index, char in _structural(text):
        if char == "(":
            parens += 1
        elif char == ")":
            parens = max(0, parens - 1)
        elif parens:
            continue
        elif char == "{":
            if depth == 0:
                prelude = _squash(text[start:index])
                body_start = index + 1
            depth += 1
        elif char == "}":
            if depth == 0:
                raise CssSyntaxError(f"Unbalanced '}}' at offset {index}")
            depth -= 1
            if depth == 0:
                statements.append(
                    CssStatement(prelude, text[body_start:index].strip())
                )
                start = index + 1
        elif char == ";" and depth == 0:
            directive = _squash(text[start:index])
            if directive:
                statements.append(CssStatement(directive))
            start = index + 1
    if depth:
        raise CssSyntaxError("Unclosed block at end of stylesheet")
    tail = _squash(text[start:])
    if tail:
        if not tail.startswith("@"):
            raise CssSyntaxError(f"Unexpected trailing text {tail[:40]!r}")
        statements.append(CssStatement(tail))
    return statements


def split_declarations(body: str) -> Optional[List[Tuple[str, str]]]:
    """Return ``(property, value)`` pairs, or ``None`` for nested bodies."""
    pieces: List[str] = []
    start = 0
    parens = 0
    for index, char in _structural(body):
        if char == "(":
            parens += 1
        elif char == ")":
            parens = max(0, parens - 1)
        elif parens:
            continue
        elif char in "{}":
            return None
        elif char == ";":
            pieces.append(body[start:index])
            start = index + 1
    pieces.append(body[start:])

    declarations: List[Tuple[str, str]] = []
    for piece in pieces:
        if not piece.strip():
            continue
        name, separator, value = piece.partition(":")
        if not separator:
            return None
        declarations.append((name.strip(), _squash(value)))
    return declarations


def format_css(css: str) -> str:
    """Re-indent ``css`` by brace depth, one statement per line."""
    lines: List[str] = []
    depth = 0
    parens = 0
    start = 0

    def emit(piece: str) -> None:
        lines.append(_INDENT * depth + piece)

    for index, char in _structural(css):
        if char == "(":
            parens += 1
        elif char == ")":
            parens = max(0, parens - 1)
        elif parens:
            continue
        elif char == "{":
            head = _squash(css[start:index])
            if lines and (
                (depth == 0 and lines[-1]) or lines[-1].strip() == "}"
            ):
                lines.append("")
            emit(f"{head} {{")
            depth += 1
            start = index + 1
        elif char == ";":
            piece = _squash(css[start:index])
            if piece:
                emit(f"{piece};")
            start = index + 1
        elif char == "}":
            piece = _squash(css[start:index])
            if piece:
                emit(f"{piece};")
            depth -= 1
            if depth < 0:
                raise CssSyntaxError(f"Unbalanced '}}' at offset {index}")
            emit("}")
            start = index + 1
    if depth:
        raise CssSyntaxError("Unclosed block at end of stylesheet")
    tail = _squash(css[start:])
    if tail:
        emit(tail)
    return "\n".join(lines) + "\n"


def _same_body(left: CssStatement, right: CssStatement) -> bool:
    if left.prelude == right.prelude and left.body and right.body:
        declarations = split_declarations(left.body)
        if declarations is not None:
            return declarations == split_declarations(right.body)
    return _compact(left.render()) == _compact(right.render())


class GlobalCssMerger:
    """Accumulate stylesheets and render their deduplicated union.

    Items are keyed by what they define: block-less directives by text,
    custom properties per ``(selector, property)`` in the layer that first
    defined them, keyframes by name, other rules per ``(layer, selector)`` and other block at-rules by
    their normalised text.
    """

    def __init__(
        self, *, policy: ConflictPolicy = ConflictPolicy.FIRST_WINS
    ) -> None:
        self._policy = policy
        self._directives: Dict[str, str] = {}
        self._layers: Dict[Optional[str], Dict[Tuple[str, str], Any]] = {}
        self._keyframes: Dict[str, Optional[str]] = {}
        self._variables: Dict[Tuple[str, str], Optional[str]] = {}

    def add(self, css: str) -> None:
        for statement in split_statements(css):
            self._add_statement(statement, None)

    def render(self) -> str:
        directives = sorted(
            enumerate(self._directives.values()),
            key=lambda item: (
                _DIRECTIVE_RANK.get(
                    CssStatement(item[1]).at_keyword or "", len(_DIRECTIVE_RANK)
                ),
                item[0],
            ),
        )
        parts = [f"{directive};" for _, directive in directives]
        for layer, items in self._layers.items():
            rendered = [self._render_item(key, value) for key, value in items.items()]
            if not rendered:
                continue
            if layer is None:
                parts.extend(rendered)
            else:
                parts.append(f"@layer {layer} {{{' '.join(rendered)}}}")
        return format_css(" ".join(parts))

    def _items(self, layer: Optional[str]) -> Dict[Tuple[str, str], Any]:
        return self._layers.setdefault(layer, {})

    def _add_statement(
        self, statement: CssStatement, layer: Optional[str]
    ) -> None:
        keyword = statement.at_keyword
        if not statement.is_block:
            self._directives.setdefault(_compact(statement.prelude), statement.prelude)
            return

        body = statement.body or ""
        params = statement.at_params
        if keyword == "layer" and layer is None and params and "," not in params:
            self._items(params)
            for inner in split_statements(body):
                self._add_statement(inner, params)
            return
        if keyword in _KEYFRAMES:
            self._add_keyframes(statement, params, layer)
            return
        if keyword is not None:
            self._items(layer).setdefault(
                ("at", _compact(statement.render())), statement
            )
            return

        selector = re.sub(r"\s*,\s*", ", ", _squash(statement.prelude))
        declarations = split_declarations(body)
        if declarations and all(
            name.startswith("--") for name, _ in declarations
        ):
            self._add_variables(selector, declarations, layer)
            return
        merge_entry(
            self._items(layer),
            ("rule", selector),
            statement,
            policy=self._policy,
            scope="rule",
            same=_same_body,
            name=selector,
        )

    def _add_variables(
        self,
        selector: str,
        declarations: Sequence[Tuple[str, str]],
        layer: Optional[str],
    ) -> None:
        key = ("vars", selector)
        for name, value in declarations:
            owner = self._variables.setdefault((selector, name), layer)
            merge_entry(
                self._items(owner).setdefault(key, {}),
                name,
                value,
                policy=self._policy,
                scope=f"{selector} custom property",
            )

    def _add_keyframes(
        self, statement: CssStatement, name: str, layer: Optional[str]
    ) -> None:
        key = ("keyframes", name)
        if name in self._keyframes:
            owner = self._keyframes[name]
            merge_entry(
                self._items(owner),
                key,
                statement,
                policy=self._policy,
                scope="@keyframes",
                same=_same_body,
                name=name,
            )
            return
        self._keyframes[name] = layer
        self._items(layer)[key] = statement

    @staticmethod
    def _render_item(key: Tuple[str, str], value: Any) -> str:
        kind, selector = key
        if kind == "vars":
            declarations = "".join(
                f"{name}: {item};" for name, item in value.items()
            )
            return f"{selector} {{{declarations}}}"
        return value.render()


def merge_global_css(
    base: str,
    stylesheets: Sequence[Optional[str]],
    *,
    policy: ConflictPolicy = ConflictPolicy.FIRST_WINS,
) -> str:
    """Merge ``stylesheets`` (in order) onto ``base``.

    Returns ``base`` itself when no stylesheet carries any text.
    """
    fragments = [css for css in stylesheets if css and css.strip()]
    if not fragments:
        return base
    merger = GlobalCssMerger(policy=policy)
    merger.add(base)
    for index, css in enumerate(fragments):
        merger.add(css)
        _LOGGER.debug("Merged global CSS fragment %d", index)
    return merger.render()
