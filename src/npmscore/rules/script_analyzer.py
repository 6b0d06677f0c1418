"""Syntax-tree analysis of JavaScript found in lifecycle scripts.

Rules depend only on the ScriptAnalyzer protocol, so the parser behind it can
be replaced without touching rule logic. The default implementation uses
tree-sitter's JavaScript grammar.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Protocol
from urllib.parse import urlsplit

import tree_sitter_javascript
from tree_sitter import Language, Node, Parser

from npmscore.models.schemas import Finding, Severity

logger = logging.getLogger(__name__)

JAVASCRIPT = Language(tree_sitter_javascript.language())

# Modules that can open outbound connections
NETWORK_MODULES = [
    "http",
    "https",
    "http2",
    "request",
    "axios",
    "node-fetch",
    "got",
    "superagent",
    "needle",
    "phin",
]

# Network indicators inside string literals passed to eval()
EVAL_NETWORK_PATTERNS = [
    re.compile(r"https?://"),
    re.compile(r"\bfetch\s*\("),
    re.compile(r"\bXMLHttpRequest"),
    re.compile(r"\brequire\s*\(\s*['\"]https?['\"]"),
]


def is_url(value: object) -> bool:
    """True for absolute http(s) URLs."""
    if not isinstance(value, str):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def contains_network_pattern(value: object) -> bool:
    if not isinstance(value, str):
        return False
    return any(pattern.search(value) for pattern in EVAL_NETWORK_PATTERNS)


class ScriptAnalyzer(Protocol):
    """Anything that turns script source into network findings."""

    def analyze(self, source: str) -> list[Finding]:
        """Return findings for source; unparseable source yields no findings."""
        ...


class TreeSitterScriptAnalyzer:
    """Finds network access in JavaScript via tree-sitter's syntax tree.

    Detects:
    - require("<network module>")
    - fetch("<url>")
    - import("<url>")
    - new XMLHttpRequest()
    - eval("<string containing a network pattern>")
    - import ... from "<url>"

    Source that does not parse cleanly (a plain shell command, usually) is
    skipped.
    """

    def __init__(self, network_modules: Iterable[str] | None = None) -> None:
        self.network_modules = set(network_modules if network_modules is not None else NETWORK_MODULES)
        self._parser = Parser(JAVASCRIPT)

    def parse(self, source: str) -> Node | None:
        """Parse source, returning the root node or None if it has syntax errors."""
        tree = self._parser.parse(source.encode("utf-8"))
        if tree.root_node.has_error:
            return None
        return tree.root_node

    def analyze(self, source: str) -> list[Finding]:
        if not source or not source.strip():
            return []

        root = self.parse(source)
        if root is None:
            logger.debug("Script is not valid JavaScript, skipping syntax-tree checks")
            return []

        findings: list[Finding] = []
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "call_expression":
                finding = self._check_call(node)
            elif node.type == "new_expression":
                finding = self._check_new(node)
            elif node.type == "import_statement":
                finding = self._check_import(node)
            else:
                finding = None

            if finding is not None:
                findings.append(finding)

            # Depth-first, left to right
            stack.extend(reversed(node.children))

        return findings

    def _check_call(self, node: Node) -> Finding | None:
        callee = node.child_by_field_name("function")
        if callee is None:
            return None

        literal = _string_literal(_first_argument(node))

        if callee.type == "import":
            if is_url(literal):
                return Finding(
                    type="dynamic-import-url",
                    url=literal,
                    description=f"Dynamic import from URL: {literal}",
                    severity=Severity.HIGH,
                )
            return None

        if callee.type != "identifier":
            return None

        name = _text(callee)
        if name == "require" and literal in self.network_modules:
            return Finding(
                type="require-network-module",
                module=literal,
                description=f"Requires network module: {literal}",
                severity=Severity.HIGH,
            )
        if name == "fetch" and is_url(literal):
            return Finding(
                type="fetch-call",
                url=literal,
                description=f"fetch() call with URL: {literal}",
                severity=Severity.HIGH,
            )
        if name == "eval" and contains_network_pattern(literal):
            return Finding(
                type="eval-network",
                description="eval() with potential network-related code",
                severity=Severity.HIGH,
            )
        return None

    def _check_new(self, node: Node) -> Finding | None:
        constructor = node.child_by_field_name("constructor")
        if constructor is not None and constructor.type == "identifier" and _text(constructor) == "XMLHttpRequest":
            return Finding(
                type="xhr-usage",
                description="XMLHttpRequest usage detected",
                severity=Severity.MEDIUM,
            )
        return None

    def _check_import(self, node: Node) -> Finding | None:
        source = _string_literal(node.child_by_field_name("source"))
        if is_url(source):
            return Finding(
                type="import-url",
                url=source,
                description=f"Import from URL: {source}",
                severity=Severity.HIGH,
            )
        return None


def _text(node: Node) -> str:
    return (node.text or b"").decode("utf-8", errors="replace")


def _first_argument(call: Node) -> Node | None:
    arguments = call.child_by_field_name("arguments")
    if arguments is None or arguments.type != "arguments":
        return None
    for child in arguments.named_children:
        if child.type != "comment":
            return child
    return None


def _string_literal(node: Node | None) -> str | None:
    """Decoded value of a plain quoted string literal, or None for anything else."""
    if node is None or node.type != "string":
        return None
    parts = []
    for child in node.named_children:
        if child.type == "escape_sequence":
            parts.append(_decode_escape(_text(child)))
        else:
            parts.append(_text(child))
    return "".join(parts)


_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v"}
_LINE_CONTINUATIONS = ("\n", "\r\n", "\r", "\u2028", "\u2029")


def _decode_escape(sequence: str) -> str:
    """Decode one JavaScript escape sequence such as \\x74, \\u003a or \\u{1F600}."""
    body = sequence[1:]
    if body in _LINE_CONTINUATIONS:
        return ""
    try:
        if body.startswith("u{"):
            code = int(body[2:-1], 16)
        elif body[0] in "xu" and len(body) > 1:
            code = int(body[1:], 16)
        elif body[0] in "01234567":
            code = int(body, 8)
        else:
            return _SIMPLE_ESCAPES.get(body, body)
        return chr(code)
    except ValueError:
        # Out of range code points stay as written
        return sequence
