"""Boolean requirement expressions.

Requirements are immutable trees over named variables (items, areas and
events). Every operation that builds a new tree returns it in simplified
form: constants absorbed, nested operators of the same kind flattened,
duplicates removed and single-child operators unwrapped.
"""

from __future__ import annotations

import re
from collections.abc import Container, Mapping
from dataclasses import dataclass


class Expr:
    """Base class for requirement expressions."""

    def free_vars(self) -> frozenset[str]:
        """Return every variable name referenced by the expression."""
        raise NotImplementedError

    def simplify(self) -> Expr:
        """Return the canonical simplified form of the expression."""
        raise NotImplementedError

    def evaluate(self, truth: Container[str]) -> bool:
        """Evaluate with the names in `truth` set to true, all others false."""
        raise NotImplementedError

    def _replace(self, mapping: Mapping[str, Expr]) -> Expr:
        raise NotImplementedError

    def substitute(self, mapping: Mapping[str, Expr]) -> Expr:
        """Replace variables found in `mapping`, then simplify.

        Variables that are not keys of the mapping are kept verbatim.
        """
        return self._replace(mapping).simplify()

    def needs(self, name: str) -> bool:
        """Check whether every satisfying assignment requires `name`.

        The variable is forced to false; the expression needs it exactly
        when the result collapses to the false constant.
        """
        return self.substitute({name: FALSE}).is_false()

    def is_true(self) -> bool:
        return isinstance(self, Const) and self.value

    def is_false(self) -> bool:
        return isinstance(self, Const) and not self.value


@dataclass(frozen=True)
class Const(Expr):
    """Constant true or false."""

    value: bool

    def free_vars(self) -> frozenset[str]:
        return frozenset()

    def simplify(self) -> Expr:
        return self

    def evaluate(self, truth: Container[str]) -> bool:
        return self.value

    def _replace(self, mapping: Mapping[str, Expr]) -> Expr:
        return self

    def __str__(self) -> str:
        return "true" if self.value else "false"


TRUE = Const(True)
FALSE = Const(False)


@dataclass(frozen=True)
class Named(Expr):
    """A variable: an item, area or event name."""

    name: str

    def free_vars(self) -> frozenset[str]:
        return frozenset([self.name])

    def simplify(self) -> Expr:
        return self

    def evaluate(self, truth: Container[str]) -> bool:
        return self.name in truth

    def _replace(self, mapping: Mapping[str, Expr]) -> Expr:
        return mapping.get(self.name, self)

    def __str__(self) -> str:
        return self.name


def _simplify_children(
    kind: type[And] | type[Or], children: tuple[Expr, ...]
) -> Expr:
    """Shared simplification for And/Or.

    For And the identity is true and the absorbing constant is false; Or is
    the dual.
    """
    identity = TRUE if kind is And else FALSE
    absorbing = FALSE if kind is And else TRUE
    items: list[Expr] = []
    for child in children:
        child = child.simplify()
        # Already-simplified children of the same kind are flat
        flat = child.items if isinstance(child, kind) else (child,)
        for item in flat:
            if item == absorbing:
                return absorbing
            if item == identity or item in items:
                continue
            items.append(item)
    if not items:
        return identity
    if len(items) == 1:
        return items[0]
    return kind(tuple(items))


@dataclass(frozen=True)
class And(Expr):
    """Conjunction of sub-expressions."""

    items: tuple[Expr, ...]

    def free_vars(self) -> frozenset[str]:
        return frozenset().union(*(item.free_vars() for item in self.items))

    def simplify(self) -> Expr:
        return _simplify_children(And, self.items)

    def evaluate(self, truth: Container[str]) -> bool:
        return all(item.evaluate(truth) for item in self.items)

    def _replace(self, mapping: Mapping[str, Expr]) -> Expr:
        return And(tuple(item._replace(mapping) for item in self.items))

    def __str__(self) -> str:
        return " AND ".join(
            f"({item})" if isinstance(item, Or) else str(item) for item in self.items
        )


@dataclass(frozen=True)
class Or(Expr):
    """Disjunction of sub-expressions."""

    items: tuple[Expr, ...]

    def free_vars(self) -> frozenset[str]:
        return frozenset().union(*(item.free_vars() for item in self.items))

    def simplify(self) -> Expr:
        return _simplify_children(Or, self.items)

    def evaluate(self, truth: Container[str]) -> bool:
        return any(item.evaluate(truth) for item in self.items)

    def _replace(self, mapping: Mapping[str, Expr]) -> Expr:
        return Or(tuple(item._replace(mapping) for item in self.items))

    def __str__(self) -> str:
        return " OR ".join(str(item) for item in self.items)


def all_of(*items: Expr) -> Expr:
    """Build a simplified conjunction."""
    return And(items).simplify()


def any_of(*items: Expr) -> Expr:
    """Build a simplified disjunction."""
    return Or(items).simplify()


# =============================================================================
# Requirement text parsing
# =============================================================================

_TOKEN_RE = re.compile(r"\(|\)|[^\s()]+")


def parse_expr(text: str | None) -> Expr:
    """Parse requirement text such as ``"a AND (b OR c)"``.

    AND binds tighter than OR. Empty or missing text means no requirement.

    Args:
        text: Requirement text from an annotation file.

    Returns:
        Simplified expression.

    Raises:
        ValueError: If the text is malformed.
    """
    if text is None:
        return TRUE
    tokens = _TOKEN_RE.findall(text)
    if not tokens:
        return TRUE
    pos = 0

    def peek() -> str | None:
        return tokens[pos] if pos < len(tokens) else None

    def take() -> str:
        nonlocal pos
        if pos >= len(tokens):
            raise ValueError(f"Unexpected end of requirement: {text!r}")
        token = tokens[pos]
        pos += 1
        return token

    def parse_or() -> Expr:
        items = [parse_and()]
        while peek() == "OR":
            take()
            items.append(parse_and())
        return Or(tuple(items))

    def parse_and() -> Expr:
        items = [parse_atom()]
        while peek() == "AND":
            take()
            items.append(parse_atom())
        return And(tuple(items))

    def parse_atom() -> Expr:
        token = take()
        if token == "(":
            inner = parse_or()
            if take() != ")":
                raise ValueError(f"Expected ')' in requirement: {text!r}")
            return inner
        if token in ("AND", "OR", ")"):
            raise ValueError(f"Unexpected {token!r} in requirement: {text!r}")
        if token == "true":
            return TRUE
        if token == "false":
            return FALSE
        return Named(token)

    result = parse_or()
    if pos != len(tokens):
        raise ValueError(f"Trailing tokens in requirement: {text!r}")
    return result.simplify()
