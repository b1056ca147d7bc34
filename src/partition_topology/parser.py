"""Boundary expression parser.

Turns stored boundary expressions, as reported by the catalog, back into
structured records. The inverse of the to_sql() rendering in models.

Grammar:
    FOR VALUES FROM (<values>) TO (<values>)           -> RANGE
    FOR VALUES IN (<values>)                           -> LIST
    FOR VALUES WITH (modulus <m>, remainder <r>)       -> HASH
    anything containing DEFAULT                        -> DEFAULT
    anything else                                      -> None

Parentheses are matched with a quote-aware scanner, so quoted values may
contain commas and parentheses.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict

from partition_topology.errors import BoundaryParseError
from partition_topology.models import (
    Boundary,
    DefaultBound,
    HashBound,
    ListBound,
    RangeBound,
    Sentinel,
    sort_key,
)
from partition_topology.observability import get_logger

logger = get_logger()

_RANGE_HEAD = re.compile(r"^\s*FOR\s+VALUES\s+FROM\s*\(", re.IGNORECASE)
_RANGE_TO = re.compile(r"\s*TO\s*\(", re.IGNORECASE)
_LIST_HEAD = re.compile(r"^\s*FOR\s+VALUES\s+IN\s*\(", re.IGNORECASE)
_HASH = re.compile(
    r"^\s*FOR\s+VALUES\s+WITH\s*\(\s*modulus\s+(\d+)\s*,\s*remainder\s+(\d+)\s*\)",
    re.IGNORECASE,
)
_INTEGER = re.compile(r"^[+-]?\d+$")
_FLOAT = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")
_QUOTES = "'\""


class BoundaryKind(str, Enum):
    """Kind of a parsed boundary expression."""

    RANGE = "RANGE"
    LIST = "LIST"
    HASH = "HASH"
    DEFAULT = "DEFAULT"


class ParsedBoundary(BaseModel):
    """Structured form of a boundary expression.

    Attributes:
        kind: RANGE, LIST, HASH or DEFAULT.
        from_value: Typed lower limit (RANGE). A tuple for multi-column keys.
        to_value: Typed upper limit (RANGE).
        from_raw: Text between the FROM parentheses.
        to_raw: Text between the TO parentheses.
        raw_values: Text between the IN parentheses (LIST), kept verbatim.
        modulus: Hash modulus (HASH).
        remainder: Hash remainder (HASH).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: BoundaryKind
    from_value: Any = None
    to_value: Any = None
    from_raw: str | None = None
    to_raw: str | None = None
    raw_values: str | None = None
    modulus: int | None = None
    remainder: int | None = None

    @property
    def values(self) -> list[Any]:
        """Return the typed LIST values."""
        if self.raw_values is None:
            return []
        return [parse_value(token) for token in split_values(self.raw_values)]

    @property
    def from_key(self) -> tuple[Any, ...]:
        """Ordering key of the lower limit (first column)."""
        return sort_key(self.from_value)

    @property
    def to_key(self) -> tuple[Any, ...]:
        """Ordering key of the upper limit (first column)."""
        return sort_key(self.to_value)

    def to_bound(self) -> Boundary:
        """Convert back to a typed boundary.

        Example:
            >>> bound = HashBound(modulus=4, remainder=1)
            >>> parse_boundary(bound.to_sql()).to_bound() == bound
            True
        """
        if self.kind is BoundaryKind.RANGE:
            return RangeBound(from_=self.from_value, to=self.to_value)
        if self.kind is BoundaryKind.LIST:
            return ListBound(values=tuple(self.values))
        if self.kind is BoundaryKind.HASH:
            return HashBound(modulus=self.modulus, remainder=self.remainder)
        return DefaultBound()


class PartitionBoundary(BaseModel):
    """A catalog partition name paired with its parsed boundary.

    Attributes:
        name: Partition name as reported, possibly schema-qualified.
        boundary: Parsed boundary, or None if the expression was not
            recognised.
        expression: The raw boundary expression.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    boundary: ParsedBoundary | None = None
    expression: str | None = None

    @classmethod
    def from_row(cls, name: str, expression: str | None) -> PartitionBoundary:
        """Parse one (name, expression) catalog row."""
        return cls(name=name, boundary=parse_boundary(expression), expression=expression)

    @property
    def schema_name(self) -> str | None:
        """Return the schema part of a qualified name."""
        if "." in self.name:
            return self.name.rsplit(".", 1)[0]
        return None

    @property
    def unqualified_name(self) -> str:
        """Return the name without its schema."""
        return self.name.rsplit(".", 1)[-1]

    @property
    def is_range(self) -> bool:
        return self.boundary is not None and self.boundary.kind is BoundaryKind.RANGE


def _closing_paren(text: str, open_index: int) -> int | None:
    """Return the index of the parenthesis closing the one at open_index."""
    depth = 0
    quote: str | None = None
    index = open_index
    while index < len(text):
        char = text[index]
        if quote is not None:
            if char == quote:
                if index + 1 < len(text) and text[index + 1] == quote:
                    index += 1
                else:
                    quote = None
        elif char in _QUOTES:
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return None


def _closing_quote(text: str, open_index: int) -> int | None:
    quote = text[open_index]
    index = open_index + 1
    while index < len(text):
        if text[index] == quote:
            if index + 1 < len(text) and text[index + 1] == quote:
                index += 2
                continue
            return index
        index += 1
    return None


def split_values(raw: str) -> list[str]:
    """Split a comma-separated value list without breaking quoted values.

    Example:
        >>> split_values("'a,b', 'it''s', 3")
        ["'a,b'", "'it''s'", '3']
    """
    tokens: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None
    index = 0
    while index < len(raw):
        char = raw[index]
        if quote is not None:
            current.append(char)
            if char == quote:
                if index + 1 < len(raw) and raw[index + 1] == quote:
                    current.append(raw[index + 1])
                    index += 1
                else:
                    quote = None
        elif char in _QUOTES:
            quote = char
            current.append(char)
        elif char == "(":
            depth += 1
            current.append(char)
        elif char == ")":
            depth -= 1
            current.append(char)
        elif char == "," and depth == 0:
            tokens.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        index += 1

    last = "".join(current).strip()
    if last or tokens:
        tokens.append(last)
    return tokens


def unquote(token: str) -> str:
    """Strip one layer of matching quotes and un-double embedded quotes.

    Example:
        >>> unquote("'O''Brien'")
        "O'Brien"
    """
    token = token.strip()
    if len(token) >= 2 and token[0] in _QUOTES and token[-1] == token[0]:
        quote = token[0]
        return token[1:-1].replace(quote * 2, quote)
    return token


def parse_value(token: str) -> Any:
    """Convert one value token to a typed value.

    Quoted strings become str (with any ::type cast dropped), bare integers
    int, bare decimals float, true/false bool, NULL None and
    MINVALUE/MAXVALUE sentinels. Other bare tokens are kept as text.
    """
    token = token.strip()
    if token and token[0] in _QUOTES:
        end = _closing_quote(token, 0)
        if end is not None:
            return unquote(token[: end + 1])
        return token

    bare = token.split("::", 1)[0].strip()
    upper = bare.upper()
    if upper in (Sentinel.MINVALUE.value, Sentinel.MAXVALUE.value):
        return Sentinel(upper)
    if upper == "TRUE":
        return True
    if upper == "FALSE":
        return False
    if upper == "NULL":
        return None
    if _INTEGER.match(bare):
        return int(bare)
    if _FLOAT.match(bare):
        return float(bare)
    return bare


def _parse_limit(raw: str) -> Any:
    values = [parse_value(token) for token in split_values(raw)]
    if len(values) == 1:
        return values[0]
    return tuple(values)


def _parenthesized(text: str, head_end: int) -> tuple[str, int] | None:
    """Return the text inside the parentheses opening at head_end - 1."""
    close = _closing_paren(text, head_end - 1)
    if close is None:
        return None
    return text[head_end:close], close + 1


def parse_boundary(expression: str | None) -> ParsedBoundary | None:
    """Parse a boundary expression.

    Args:
        expression: Boundary expression as stored by the catalog.

    Returns:
        ParsedBoundary, or None when the expression matches no known form.

    Example:
        >>> parsed = parse_boundary("FOR VALUES FROM ('2024-01-01') TO ('2024-02-01')")
        >>> parsed.kind, parsed.from_value
        (<BoundaryKind.RANGE: 'RANGE'>, '2024-01-01')
    """
    if not expression:
        return None
    text = expression.strip()

    head = _RANGE_HEAD.match(text)
    if head:
        lower = _parenthesized(text, head.end())
        if lower is not None:
            to_head = _RANGE_TO.match(text, lower[1])
            if to_head:
                upper = _parenthesized(text, to_head.end())
                if upper is not None:
                    return ParsedBoundary(
                        kind=BoundaryKind.RANGE,
                        from_value=_parse_limit(lower[0]),
                        to_value=_parse_limit(upper[0]),
                        from_raw=lower[0].strip(),
                        to_raw=upper[0].strip(),
                    )

    head = _LIST_HEAD.match(text)
    if head:
        values = _parenthesized(text, head.end())
        if values is not None:
            return ParsedBoundary(kind=BoundaryKind.LIST, raw_values=values[0].strip())

    match = _HASH.match(text)
    if match:
        return ParsedBoundary(
            kind=BoundaryKind.HASH,
            modulus=int(match.group(1)),
            remainder=int(match.group(2)),
        )

    if "DEFAULT" in text.upper():
        return ParsedBoundary(kind=BoundaryKind.DEFAULT)

    return None


def require_boundary(expression: str | None, *, partition: str | None = None) -> ParsedBoundary:
    """Parse a boundary expression, failing on unrecognised input.

    Raises:
        BoundaryParseError: If the expression matches no known form.
    """
    parsed = parse_boundary(expression)
    if parsed is None:
        raise BoundaryParseError(expression or "", partition=partition)
    return parsed


def parse_partitions(rows: Iterable[tuple[str, str | None]]) -> list[PartitionBoundary]:
    """Parse (name, expression) rows, keeping unrecognised ones as data."""
    boundaries = []
    for name, expression in rows:
        boundary = PartitionBoundary.from_row(name, expression)
        if boundary.boundary is None:
            logger.debug("boundary_unparsed", partition=name, expression=expression)
        boundaries.append(boundary)
    return boundaries
