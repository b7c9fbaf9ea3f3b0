"""
Canonical ordering of brackets and collection of like terms.

canonicalize() picks one representative of [a, b] and -[b, a] so that
equal monomials compare equal; collect_terms() uses it to merge a sum into
integer multiples of distinct monomials and decide whether it vanishes.
"""

from typing import Iterator, List, Optional, Tuple

from .values import (
    Add,
    Bracket,
    Kind,
    Mul,
    Negative,
    ONE,
    Value,
    ZERO,
    as_integer,
    number,
)

Term = Tuple[int, Value]


# ============================================================
# Canonical Ordering
# ============================================================

def _order_key(value: Value) -> tuple:
    # Brackets sort above kinds; kinds sort by index, then name.
    if isinstance(value, Kind):
        return (0, value.index, value.name)
    if isinstance(value, Bracket):
        return (1, _order_key(value.left), _order_key(value.right))
    return (2, str(value))


def signed_form(value: Value) -> Tuple[int, Value]:
    """
    Split the canonical form of value into (sign, core).

    The core is never a Negative. A bracket whose operands are kinds or
    brackets is ordered so that the greater operand comes first; each swap
    flips the sign, and signs from nested brackets are threaded outward.
    Other shapes are their own core with sign +1.
    """
    sign = 1
    while isinstance(value, Negative):
        sign = -sign
        value = value.inner

    if not isinstance(value, Bracket):
        return sign, value
    if not isinstance(value.left, (Kind, Bracket)) or not isinstance(value.right, (Kind, Bracket)):
        return sign, value

    left_sign, left = signed_form(value.left)
    right_sign, right = signed_form(value.right)
    sign *= left_sign * right_sign

    if _order_key(left) < _order_key(right):
        return -sign, Bracket(right, left)
    return sign, Bracket(left, right)


def canonicalize(value: Value) -> Value:
    """
    Put a value into canonical bracket order.

    [E(1), E(2)]          -> -[E(2), E(1)]
    [E(3), [E(1), E(2)]]  -> [[E(2), E(1)], E(3)]
    --[E(2), E(1)]        -> [E(2), E(1)]

    Shapes other than brackets of kinds and brackets (and negations of
    those) are returned unchanged. The function is idempotent.
    """
    sign, core = signed_form(value)
    if sign < 0:
        return Negative(core)
    if core is value:
        return value
    return core


# ============================================================
# Term Collection
# ============================================================

def iter_terms(value: Value) -> Iterator[Term]:
    """
    Yield (coefficient, monomial) for each summand of value, left to right.

    Negative wrappers and integer factors of Mul are moved into the
    coefficient; an integer summand k yields (k, ONE). Monomials are in
    canonical form.
    """
    stack = [(value, 1)]
    while stack:
        v, coefficient = stack.pop()
        if isinstance(v, Add):
            stack.append((v.right, coefficient))
            stack.append((v.left, coefficient))
            continue
        if isinstance(v, Negative):
            stack.append((v.inner, -coefficient))
            continue
        if isinstance(v, Mul):
            scalar = as_integer(v.left)
            if scalar is not None:
                stack.append((v.right, coefficient * scalar))
                continue
            scalar = as_integer(v.right)
            if scalar is not None:
                stack.append((v.left, coefficient * scalar))
                continue
        constant = as_integer(v)
        if constant is not None:
            yield coefficient * constant, ONE
            continue
        sign, monomial = signed_form(v)
        yield coefficient * sign, monomial


def collect_terms_list(value: Value) -> List[Term]:
    """
    Merge like terms, keeping first-seen order.

    Returns:
        List of (coefficient, monomial) with non-zero coefficients
    """
    merged: List[List] = []
    for coefficient, monomial in iter_terms(value):
        for entry in merged:
            if entry[1] == monomial:
                entry[0] += coefficient
                break
        else:
            merged.append([coefficient, monomial])
    return [(c, m) for c, m in merged if c != 0]


def term_value(coefficient: int, monomial: Value) -> Value:
    """Build coefficient * monomial in display form."""
    if monomial == ONE:
        return number(coefficient)
    if coefficient == 1:
        return monomial
    if coefficient == -1:
        return Negative(monomial)
    if coefficient > 0:
        return Mul(number(coefficient), monomial)
    return Negative(Mul(number(-coefficient), monomial))


def collect_terms(value: Value) -> Value:
    """
    Collect like terms of a sum.

    Examples:
        collect_terms(m + -m)                -> 0
        collect_terms(2 * m + 3 * m + n)     -> 5 * m + n
        collect_terms([E(1), E(2)] + [E(2), E(1)]) -> 0
    """
    terms = collect_terms_list(value)
    if not terms:
        return ZERO
    result: Optional[Value] = None
    for coefficient, monomial in reversed(terms):
        term = term_value(coefficient, monomial)
        result = term if result is None else Add(term, result)
    return result


def is_zero(value: Value) -> bool:
    """Check whether a linear combination collects to zero."""
    return collect_terms(value) == ZERO
