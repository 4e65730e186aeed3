"""
Quarry condition compiler — turns WHERE/HAVING input into ``( ... )`` fragments.

Two explicit forms:

    Column("age", ">", 18)          ->  ( "age" > ? )      [18]
    Column("status", "=", [1, 2])   ->  ( "status" IN (1,2) )
    Raw("age BETWEEN ? AND ?", 1, 9)

and the shorthand string form accepted by ``QueryBuilder.where``:

    where("name")                   ->  ( "name" = ? )     value supplied later
    where("age", ">")               ->  ( "age" > ? )
    where("name", "Ann")            ->  ( "name" = ? )     ["Ann"]
    where("id", [1, 2, 3])          ->  ( "id" IN (1,2,3) )
    where("name LIKE")              ->  ( "name" LIKE ? )
    where("deleted_at IS NULL")     ->  ( deleted_at IS NULL )

Set membership values are escaped and inlined rather than bound, since a
single placeholder cannot stand for a list.
"""

from __future__ import annotations

import re
from typing import Any, Callable, List, Optional, Tuple

from ..faults import QueryFault
from .dialects import Dialect


__all__ = [
    "UNBOUND",
    "NOT_GIVEN",
    "Condition",
    "Column",
    "Raw",
    "condition",
    "count_placeholders",
    "bind_params",
]


class _Unbound:
    """Placeholder whose value is supplied when the query is executed."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNBOUND"

    def __bool__(self) -> bool:
        return False


UNBOUND = _Unbound()

# Default for the value argument, so an explicit None can mean NULL
NOT_GIVEN = object()

OPERATORS = frozenset({
    "=", "!=", "<>", "<", ">", "<=", ">=",
    "LIKE", "NOT LIKE", "ILIKE", "IN", "NOT IN", "IS", "IS NOT",
})

_MEMBERSHIP = {"=": "IN", "IN": "IN", "!=": "NOT IN", "<>": "NOT IN", "NOT IN": "NOT IN"}

# "<column> <operator>" where column is a dotted identifier or a function call
_COLUMN_OP_RE = re.compile(
    r"^\s*([A-Za-z_][\w.]*|\w+\([^()]*\))\s+"
    r"(=|!=|<>|<=|>=|<|>|NOT\s+LIKE|I?LIKE|NOT\s+IN|IN|IS\s+NOT|IS)\s*$",
    re.IGNORECASE,
)

# A '?' outside single-quoted literals
_PLACEHOLDER_RE = re.compile(r"'(?:[^'\\]|\\.)*'|\?")

_SEQUENCES = (list, tuple, set, frozenset)

Escape = Callable[[Any], str]


def _normalize_op(op: str) -> str:
    return " ".join(op.upper().split())


def count_placeholders(sql: str) -> int:
    return sum(1 for m in _PLACEHOLDER_RE.finditer(sql) if m.group(0) == "?")


class Condition:
    """A compiled-on-demand WHERE/HAVING term."""

    def compile(self, dialect: Dialect, escape: Optional[Escape] = None) -> Tuple[str, List[Any]]:
        raise NotImplementedError


class Column(Condition):
    """Comparison of one column against a bound value or an inlined list."""

    def __init__(self, name: str, op: str = "=", value: Any = UNBOUND):
        op = _normalize_op(op)
        if op not in OPERATORS:
            raise QueryFault(name, "condition", f"unsupported operator '{op}'")
        self.name = name
        self.op = op
        self.value = value

    def compile(self, dialect: Dialect, escape: Optional[Escape] = None) -> Tuple[str, List[Any]]:
        column = dialect.quote_columns(self.name)
        escape = escape or dialect.quote_literal

        if isinstance(self.value, _SEQUENCES):
            op = _MEMBERSHIP.get(self.op)
            if op is None:
                raise QueryFault(self.name, "condition", f"operator '{self.op}' cannot take a list")
            values = list(self.value)
            if not values:
                # Nothing is IN an empty set; everything is NOT IN it
                return ("( 1 = 0 )" if op == "IN" else "( 1 = 1 )"), []
            inlined = ",".join(escape(v) for v in values)
            return f"( {column} {op} ({inlined}) )", []

        if self.value is None and self.op in ("=", "IS", "!=", "<>", "IS NOT"):
            test = "IS NULL" if self.op in ("=", "IS") else "IS NOT NULL"
            return f"( {column} {test} )", []

        return f"( {column} {self.op} ? )", [self.value]

    def __repr__(self) -> str:
        return f"Column({self.name!r}, {self.op!r}, {self.value!r})"


class Raw(Condition):
    """
    Verbatim SQL fragment.

    When no params are given, every ``?`` in the fragment is an unbound
    slot filled at execution time.
    """

    def __init__(self, fragment: str, *params: Any):
        self.fragment = fragment.strip()
        self.params = list(params)

    def compile(self, dialect: Dialect, escape: Optional[Escape] = None) -> Tuple[str, List[Any]]:
        params = self.params
        if not params:
            params = [UNBOUND] * count_placeholders(self.fragment)
        return f"( {self.fragment} )", list(params)

    def __repr__(self) -> str:
        return f"Raw({self.fragment!r})"


def condition(expr: Any, values: Any = NOT_GIVEN, *params: Any) -> Condition:
    """
    Build a Condition from the shorthand form.

    Args:
        expr: column name, ``"<column> <operator>"``, raw SQL, or a Condition
        values: an operator string, a list/tuple/set for IN, or a value;
            an explicit None compares against NULL
        params: values bound to the placeholder(s)
    """
    if isinstance(expr, Condition):
        return expr

    expr = expr.strip()
    value = params[0] if params else UNBOUND

    if values is None and not params:
        value = None
    if values is None or values is NOT_GIVEN:
        values = None
    elif not isinstance(values, _SEQUENCES):
        # A scalar in operator position is the value itself: where("id", 5),
        # where("name", "Ann"), where("name LIKE", "A%")
        if not isinstance(values, str) or (not params and _normalize_op(values) not in OPERATORS):
            value, values = values, None

    if " " not in expr:
        if isinstance(values, _SEQUENCES):
            return Column(expr, "IN", values)
        if len(params) > 1:
            raise QueryFault(expr, "condition", f"one value expected, got {len(params)}")
        return Column(expr, values or "=", value)

    match = _COLUMN_OP_RE.match(expr)
    if match:
        name, op = match.group(1), _normalize_op(match.group(2))
        if isinstance(values, _SEQUENCES):
            return Column(name, op, values)
        if op in ("IS", "IS NOT") and value is UNBOUND:
            raise QueryFault(expr, "condition", "IS needs a value; write 'col IS NULL' instead")
        return Column(name, op, value)

    if isinstance(values, _SEQUENCES):
        raise QueryFault(expr, "condition", "a list can only be compared against a column")
    if not params and value is not UNBOUND:
        params = (value,)
    return Raw(expr, *params)


def bind_params(params: List[Any], extra: Optional[List[Any]] = None) -> List[Any]:
    """
    Fill unbound slots in clause order from ``extra``.

    Leftover values in ``extra`` are appended after the last slot.
    """
    extra = list(extra or [])
    bound = []
    for value in params:
        if value is UNBOUND:
            if not extra:
                raise QueryFault("query", "bind", "not enough parameters for the placeholders")
            value = extra.pop(0)
        bound.append(value)
    bound.extend(extra)
    return bound
