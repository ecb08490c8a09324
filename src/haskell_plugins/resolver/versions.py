"""Cabal version numbers and version ranges.

Supports the range syntax used in plugin files::

    >=1.2 && <1.3
    ^>=0.4.1 || ==0.5.*
    -any
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

_VERSION_RE = re.compile(r"^\d+(\.\d+)*$")
_TOKEN_RE = re.compile(
    r"\s*(&&|\|\||\(|\)|\^>=|>=|<=|==|>|<|-any|-none|[0-9]+(?:\.[0-9]+)*(?:\.\*)?)"
)

Version = tuple[int, ...]


def parse_version(text: str) -> Version:
    """Parse a dotted version such as ``1.2.0.3``.

    Raises:
        ValueError: If the text is not a version
    """
    text = text.strip()
    if not _VERSION_RE.match(text):
        raise ValueError(f"Invalid version {text!r}")
    return tuple(int(part) for part in text.split("."))


def format_version(version: Version) -> str:
    return ".".join(str(part) for part in version)


def _compare(a: Version, b: Version) -> int:
    # Cabal compares versions as lists: 1.0 < 1.0.0
    return (a > b) - (a < b)


@dataclass(frozen=True)
class VersionRange:
    """A parsed version range; call :meth:`contains` to test a version."""

    text: str
    _predicate: Callable[[Version], bool]

    def contains(self, version: Version) -> bool:
        return self._predicate(version)

    def newest(self, versions: Iterable[Version]) -> Version | None:
        """Newest version in ``versions`` that lies in the range."""
        matching = [v for v in versions if self.contains(v)]
        return max(matching) if matching else None

    def __str__(self) -> str:
        return self.text


def parse_range(text: str | None) -> VersionRange:
    """Parse a Cabal version range; ``None`` or empty means any version.

    Raises:
        ValueError: If the range is malformed
    """
    if text is None or not text.strip():
        return VersionRange("-any", lambda v: True)

    tokens = _tokenize(text)
    parser = _RangeParser(tokens, text)
    predicate = parser.parse()
    return VersionRange(text.strip(), predicate)


def _tokenize(text: str) -> list[str]:
    tokens = []
    pos = 0
    stripped = text.rstrip()
    while pos < len(stripped):
        match = _TOKEN_RE.match(stripped, pos)
        if match is None or match.end() == pos:
            raise ValueError(f"Invalid version range {text!r} near {stripped[pos:]!r}")
        tokens.append(match.group(1))
        pos = match.end()
    return tokens


class _RangeParser:
    """Recursive descent: ``||`` binds looser than ``&&``."""

    def __init__(self, tokens: list[str], text: str):
        self.tokens = tokens
        self.text = text
        self.pos = 0

    def parse(self) -> Callable[[Version], bool]:
        predicate = self._union()
        if self.pos != len(self.tokens):
            self._fail()
        return predicate

    def _peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> str:
        token = self._peek()
        if token is None:
            self._fail()
        self.pos += 1
        return token

    def _fail(self):
        raise ValueError(f"Invalid version range {self.text!r}")

    def _union(self) -> Callable[[Version], bool]:
        parts = [self._intersection()]
        while self._peek() == "||":
            self._next()
            parts.append(self._intersection())
        if len(parts) == 1:
            return parts[0]
        return lambda v: any(p(v) for p in parts)

    def _intersection(self) -> Callable[[Version], bool]:
        parts = [self._atom()]
        while self._peek() == "&&":
            self._next()
            parts.append(self._atom())
        if len(parts) == 1:
            return parts[0]
        return lambda v: all(p(v) for p in parts)

    def _atom(self) -> Callable[[Version], bool]:
        token = self._next()
        if token == "(":
            inner = self._union()
            if self._next() != ")":
                self._fail()
            return inner
        if token == "-any":
            return lambda v: True
        if token == "-none":
            return lambda v: False
        if token in ("==", ">=", "<=", ">", "<", "^>="):
            return self._comparison(token, self._next())
        self._fail()

    def _comparison(self, op: str, operand: str) -> Callable[[Version], bool]:
        if operand.endswith(".*"):
            if op != "==":
                self._fail()
            prefix = parse_version(operand[:-2])
            return lambda v: v[: len(prefix)] == prefix
        try:
            bound = parse_version(operand)
        except ValueError:
            self._fail()

        if op == "==":
            return lambda v: _compare(v, bound) == 0
        if op == ">=":
            return lambda v: _compare(v, bound) >= 0
        if op == ">":
            return lambda v: _compare(v, bound) > 0
        if op == "<=":
            return lambda v: _compare(v, bound) <= 0
        if op == "<":
            return lambda v: _compare(v, bound) < 0

        # ^>=x.y.z means >=x.y.z && <x.(y+1)
        major = bound[:2] if len(bound) >= 2 else (bound[0], 0)
        upper = (major[0], major[1] + 1)
        return lambda v: _compare(v, bound) >= 0 and _compare(v, upper) < 0
