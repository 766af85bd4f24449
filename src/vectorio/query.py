# src/vectorio/query.py

"""
This module parses the attribute query accepted at load time:

    SELECT <* | col, ...> FROM <layer> [WHERE <predicate>]

Predicates support comparisons (= != <> < <= > >=), IS [NOT] NULL,
AND, OR, NOT and parentheses. The parsed query is either pushed down to the
driver as a normalized WHERE clause, or evaluated in memory against a
GeoDataFrame with SQL three-valued logic.
"""

import logging
import operator
import re
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, List, Optional, Set, Tuple, Union

import geopandas as gpd
import pandas as pd

from .errors import MalformedQuery

log = logging.getLogger(__name__)

__all__ = [
    "Column",
    "Literal",
    "Compare",
    "IsNull",
    "BoolOp",
    "Not",
    "AttributeQuery",
    "parse_query",
    "evaluate_predicate",
    "apply_query"
]

KEYWORDS = {"SELECT", "FROM", "WHERE", "AND", "OR", "NOT", "IS", "NULL", "TRUE", "FALSE"}

COMPARATORS = {
    "=": operator.eq,
    "!=": operator.ne,
    "<>": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge
}

_TOKEN_RE = re.compile(r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<string>'(?:[^']|'')*')
  | (?P<quoted>"(?:[^"]|"")+")
  | (?P<op><>|!=|<=|>=|=|<|>)
  | (?P<punct>[(),*\-])
  | (?P<word>[A-Za-z_][A-Za-z0-9_]*)
""", re.VERBOSE)

# --- AST ---

@dataclass(frozen=True)
class Column:
    name: str

@dataclass(frozen=True)
class Literal:
    value: Union[int, float, str, bool]

@dataclass(frozen=True)
class Compare:
    op: str
    left: Union[Column, Literal]
    right: Union[Column, Literal]

@dataclass(frozen=True)
class IsNull:
    operand: Column
    negated: bool = False

@dataclass(frozen=True)
class BoolOp:
    op: str  # "AND" or "OR"
    left: Any
    right: Any

@dataclass(frozen=True)
class Not:
    operand: Any

@dataclass(frozen=True)
class _Token:
    kind: str
    value: str
    pos: int

def _tokenize(text: str) -> List[_Token]:
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise MalformedQuery(f"Unexpected character {text[pos]!r} at position {pos} in query: {text}")
        kind = match.lastgroup
        value = match.group()
        if kind == "word" and value.upper() in KEYWORDS:
            kind, value = "keyword", value.upper()
        if kind != "ws":
            tokens.append(_Token(kind, value, pos))
        pos = match.end()
    tokens.append(_Token("eof", "", len(text)))
    return tokens

class _Parser:
    """Recursive-descent parser over the token list."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.i = 0

    @property
    def current(self) -> _Token:
        return self.tokens[self.i]

    def _fail(self, expected: str):
        tok = self.current
        found = "end of query" if tok.kind == "eof" else repr(tok.value)
        raise MalformedQuery(
            f"Expected {expected} at position {tok.pos}, found {found} in query: {self.text}"
        )

    def _advance(self) -> _Token:
        tok = self.current
        self.i += 1
        return tok

    def _accept(self, kind: str, value: Optional[str] = None) -> Optional[_Token]:
        tok = self.current
        if tok.kind == kind and (value is None or tok.value == value):
            return self._advance()
        return None

    def _expect(self, kind: str, value: Optional[str] = None, label: Optional[str] = None) -> _Token:
        tok = self._accept(kind, value)
        if tok is None:
            self._fail(label or value or kind)
        return tok

    def _identifier(self, label: str) -> str:
        tok = self.current
        if tok.kind == "word":
            return self._advance().value
        if tok.kind == "quoted":
            self._advance()
            return tok.value[1:-1].replace('""', '"')
        self._fail(label)

    def parse(self) -> "AttributeQuery":
        self._expect("keyword", "SELECT")

        if self._accept("punct", "*"):
            columns = None
        else:
            names = [self._identifier("column name or '*'")]
            while self._accept("punct", ","):
                names.append(self._identifier("column name"))
            columns = tuple(names)

        self._expect("keyword", "FROM")
        layer = self._identifier("layer name")

        where = None
        if self._accept("keyword", "WHERE"):
            where = self._or()

        if self.current.kind != "eof":
            self._fail("end of query")

        return AttributeQuery(columns=columns, layer=layer, where=where, text=self.text)

    def _or(self):
        node = self._and()
        while self._accept("keyword", "OR"):
            node = BoolOp("OR", node, self._and())
        return node

    def _and(self):
        node = self._not()
        while self._accept("keyword", "AND"):
            node = BoolOp("AND", node, self._not())
        return node

    def _not(self):
        if self._accept("keyword", "NOT"):
            return Not(self._not())
        return self._predicate()

    def _predicate(self):
        if self._accept("punct", "("):
            node = self._or()
            self._expect("punct", ")", label="')'")
            return node

        left = self._operand()

        if self._accept("keyword", "IS"):
            negated = self._accept("keyword", "NOT") is not None
            self._expect("keyword", "NULL")
            if not isinstance(left, Column):
                raise MalformedQuery(f"IS NULL requires a column, got {left!r} in query: {self.text}")
            return IsNull(left, negated)

        tok = self._accept("op")
        if tok is None:
            self._fail("comparison operator or IS [NOT] NULL")
        right = self._operand()
        return Compare(tok.value, left, right)

    def _operand(self) -> Union[Column, Literal]:
        tok = self.current
        if tok.kind in ("word", "quoted"):
            return Column(self._identifier("column name"))
        if tok.kind == "number":
            return Literal(_number(self._advance().value))
        if tok.kind == "punct" and tok.value == "-":
            self._advance()
            num = self._expect("number", label="number after '-'")
            return Literal(-_number(num.value))
        if tok.kind == "string":
            self._advance()
            return Literal(tok.value[1:-1].replace("''", "'"))
        if tok.kind == "keyword" and tok.value in ("TRUE", "FALSE"):
            self._advance()
            return Literal(tok.value == "TRUE")
        if tok.kind == "keyword" and tok.value == "NULL":
            raise MalformedQuery(
                f"Comparison with NULL at position {tok.pos} is always unknown; "
                f"use IS [NOT] NULL in query: {self.text}"
            )
        self._fail("column name or literal")

def _number(text: str) -> Union[int, float]:
    if re.fullmatch(r"\d+", text):
        return int(text)
    return float(text)

@dataclass(frozen=True)
class AttributeQuery:
    """
    A parsed attribute query.

    Args:
        columns: Selected field names, or None for '*'.
        layer: The pseudo-table named in FROM.
        where: Predicate AST, or None.
        text: The original query string.
    """
    columns: Optional[Tuple[str, ...]]
    layer: str
    where: Optional[Any] = None
    text: str = ""

    def referenced_fields(self) -> Set[str]:
        names = set(self.columns or ())
        names.update(_fields_in(self.where))
        return names

    def validate_fields(
        self,
        available: Iterable[str],
        dtypes: Optional[Iterable[Any]] = None,
        path: Optional[str] = None
    ):
        """
        Checks the query against a layer schema.

        Args:
            available: Field names of the layer.
            dtypes: Optional dtypes aligned with `available`. When given,
                comparisons between text and numeric operands are rejected,
                since drivers convert them implicitly and pandas does not.
            path: Dataset path, reported in the error.

        Raises:
            MalformedQuery: Naming the first unknown or mistyped field.
        """
        available = list(available)
        for name in sorted(self.referenced_fields()):
            if name not in available:
                raise MalformedQuery(
                    f"Field '{name}' does not exist in layer '{self.layer}'. Available: {available}",
                    path=path,
                    layer=self.layer,
                    field=name
                )

        if dtypes is None:
            return

        kinds = {name: _dtype_kind(dtype) for name, dtype in zip(available, dtypes)}
        for node in _comparisons(self.where):
            left, right = (_operand_kind(side, kinds) for side in (node.left, node.right))
            if "other" in (left, right) or (left, right) in _COMPATIBLE_KINDS:
                continue
            column = next((side.name for side in (node.left, node.right) if isinstance(side, Column)), None)
            raise MalformedQuery(
                f"Cannot compare {left} with {right} in '{_render(node)}' (layer '{self.layer}')",
                path=path,
                layer=self.layer,
                field=column
            )

    def where_sql(self) -> Optional[str]:
        """Renders the predicate as a WHERE clause understood by OGR SQL and SQLite."""
        return _render(self.where) if self.where is not None else None

def parse_query(text: Union[str, AttributeQuery]) -> AttributeQuery:
    """
    Parses a query string. An already parsed AttributeQuery is returned unchanged.

    Raises:
        MalformedQuery: On any construct outside the supported subset.
    """
    if isinstance(text, AttributeQuery):
        return text
    if not isinstance(text, str) or not text.strip():
        raise MalformedQuery(f"Query must be a non-empty string, got {text!r}")

    query = _Parser(text.strip()).parse()
    log.debug(f"Parsed query on layer '{query.layer}': columns={query.columns} where={query.where_sql()}")
    return query

def _fields_in(node) -> Set[str]:
    if node is None or isinstance(node, Literal):
        return set()
    if isinstance(node, Column):
        return {node.name}
    if isinstance(node, Compare):
        return _fields_in(node.left) | _fields_in(node.right)
    if isinstance(node, IsNull):
        return {node.operand.name}
    if isinstance(node, BoolOp):
        return _fields_in(node.left) | _fields_in(node.right)
    if isinstance(node, Not):
        return _fields_in(node.operand)
    raise TypeError(f"Unknown query node {node!r}")

_COMPATIBLE_KINDS = {
    ("number", "number"),
    ("text", "text"),
    ("datetime", "datetime"),
    # ISO 8601 literals
    ("datetime", "text"),
    ("text", "datetime")
}

def _dtype_kind(dtype: Any) -> str:
    name = str(dtype).lower()
    if name.startswith(("int", "uint", "float", "bool")):
        return "number"
    if name.startswith("datetime"):
        return "datetime"
    if name in ("object", "str") or name.startswith("string"):
        return "text"
    return "other"

def _operand_kind(node, kinds) -> str:
    if isinstance(node, Column):
        return kinds.get(node.name, "other")
    # booleans render as 1/0
    return "text" if isinstance(node.value, str) else "number"

def _comparisons(node) -> Iterator[Compare]:
    if isinstance(node, Compare):
        yield node
    elif isinstance(node, BoolOp):
        yield from _comparisons(node.left)
        yield from _comparisons(node.right)
    elif isinstance(node, Not):
        yield from _comparisons(node.operand)

def _render(node) -> str:
    if isinstance(node, Column):
        return '"' + node.name.replace('"', '""') + '"'
    if isinstance(node, Literal):
        value = node.value
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, str):
            return "'" + value.replace("'", "''") + "'"
        return repr(value)
    if isinstance(node, Compare):
        op = "<>" if node.op == "!=" else node.op
        return f"{_render(node.left)} {op} {_render(node.right)}"
    if isinstance(node, IsNull):
        return f"{_render(node.operand)} IS {'NOT ' if node.negated else ''}NULL"
    if isinstance(node, BoolOp):
        return f"({_render(node.left)} {node.op} {_render(node.right)})"
    if isinstance(node, Not):
        return f"NOT ({_render(node.operand)})"
    raise TypeError(f"Unknown query node {node!r}")

def _operand_values(node, frame: pd.DataFrame):
    if isinstance(node, Column):
        return frame[node.name]
    return node.value

def evaluate_predicate(node, frame: pd.DataFrame) -> pd.Series:
    """
    Evaluates a predicate AST over `frame`.

    Returns:
        pd.Series: Nullable boolean series; NA marks rows where the predicate is unknown.
    """
    if isinstance(node, Compare):
        left = _operand_values(node.left, frame)
        right = _operand_values(node.right, frame)
        known = pd.Series(True, index=frame.index)
        for side in (left, right):
            if isinstance(side, pd.Series):
                known &= side.notna()

        result = pd.Series(pd.NA, index=frame.index, dtype="boolean")
        if known.any():
            subset = [side[known] if isinstance(side, pd.Series) else side for side in (left, right)]
            try:
                values = COMPARATORS[node.op](*subset)
            except TypeError as e:
                raise MalformedQuery(f"Cannot evaluate '{_render(node)}': {e}") from e
            if not isinstance(values, pd.Series):
                # literal compared with literal
                values = pd.Series(bool(values), index=frame.index[known])
            result[known] = values.astype(bool)
        return result

    if isinstance(node, IsNull):
        nulls = frame[node.operand.name].isna()
        return (~nulls if node.negated else nulls).astype("boolean")

    if isinstance(node, BoolOp):
        left = evaluate_predicate(node.left, frame)
        right = evaluate_predicate(node.right, frame)
        return (left & right) if node.op == "AND" else (left | right)

    if isinstance(node, Not):
        return ~evaluate_predicate(node.operand, frame)

    raise MalformedQuery(f"Unsupported predicate node {node!r}")

def apply_query(gdf: gpd.GeoDataFrame, query: Union[str, AttributeQuery]) -> gpd.GeoDataFrame:
    """
    Applies a query to an in-memory GeoDataFrame: rows where the predicate is
    TRUE are kept (FALSE and unknown are dropped), then columns are projected.
    The geometry column is always kept.
    """
    query = parse_query(query)
    geom_col = gdf.geometry.name
    fields = [c for c in gdf.columns if c != geom_col]
    query.validate_fields(fields, dtypes=[gdf[c].dtype for c in fields])

    if query.where is not None:
        mask = evaluate_predicate(query.where, gdf).fillna(False).astype(bool)
        gdf = gdf[mask]

    if query.columns is not None:
        keep = [c for c in query.columns if c != geom_col] + [geom_col]
        gdf = gdf[keep]

    return gdf.copy()
