"""
Fast search with integer combinations of left-normed E chains.

A chain (i1, i2, ..., im) stands for [[[E(i1), E(i2)], E(i3)], ..., E(im)].
Every value in the search recurrence of bracketeer.search is a combination
of such chains once n >= 1, so the recurrence can be stepped with plain
dictionaries instead of rewriting trees. The only normalization applied is
antisymmetry of the innermost bracket: (i, j) is stored with i > j, and
(i, i) vanishes.
"""

import logging
from typing import Dict, Iterable, Iterator, Optional, Tuple

from .rewriter import STRUCTURE_CONSTANTS
from .canonical import term_value
from .values import Add, Bracket, Kind, Value, ZERO

logger = logging.getLogger(__name__)

Chain = Tuple[int, ...]


def _cartan(i: int, j: int) -> int:
    return STRUCTURE_CONSTANTS[i - 1][j - 1]


class ChainSum:
    """
    An ordered integer combination of E chains.

        x = ChainSum({(1,): 1})     # E(1)
        x.bracket(2)                # -[E(2), E(1)], stored as {(2, 1): -1}
    """

    __slots__ = ('_terms',)

    def __init__(self, terms: Optional[Dict[Chain, int]] = None):
        self._terms: Dict[Chain, int] = {}
        if terms:
            for chain, coefficient in terms.items():
                self._accumulate(tuple(chain), coefficient)

    @classmethod
    def generator(cls, index: int) -> 'ChainSum':
        return cls({(index,): 1})

    def _accumulate(self, chain: Chain, coefficient: int) -> None:
        sign, chain = _normalize(chain)
        if sign == 0 or coefficient == 0:
            return
        total = self._terms.get(chain, 0) + sign * coefficient
        if total:
            self._terms[chain] = total
        else:
            del self._terms[chain]

    def bracket(self, index: int) -> 'ChainSum':
        """[self, E(index)]"""
        result = ChainSum()
        for chain, coefficient in self._terms.items():
            result._accumulate(chain + (index,), coefficient)
        return result

    def scale(self, factor: int) -> 'ChainSum':
        if factor == 0:
            return ChainSum()
        return ChainSum({c: n * factor for c, n in self._terms.items()})

    def __add__(self, other: 'ChainSum') -> 'ChainSum':
        result = ChainSum(self._terms)
        for chain, coefficient in other._terms.items():
            result._accumulate(chain, coefficient)
        return result

    def __sub__(self, other: 'ChainSum') -> 'ChainSum':
        return self + other.scale(-1)

    def __neg__(self) -> 'ChainSum':
        return self.scale(-1)

    def is_zero(self) -> bool:
        return not self._terms

    def items(self) -> Iterator[Tuple[Chain, int]]:
        return iter(self._terms.items())

    def __len__(self) -> int:
        return len(self._terms)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ChainSum):
            return NotImplemented
        return self._terms == other._terms

    def to_value(self) -> Value:
        """Convert to a Value tree (right-nested sum of scaled brackets)."""
        result: Optional[Value] = None
        for chain, coefficient in reversed(list(self._terms.items())):
            term = term_value(coefficient, chain_value(chain))
            result = term if result is None else Add(term, result)
        return ZERO if result is None else result

    def __str__(self) -> str:
        return str(self.to_value())

    def __repr__(self) -> str:
        return f"ChainSum({self._terms})"


def _normalize(chain: Chain) -> Tuple[int, Chain]:
    if len(chain) < 2:
        return 1, chain
    first, second = chain[0], chain[1]
    if first == second:
        return 0, chain
    if first < second:
        return -1, (second, first) + chain[2:]
    return 1, chain


def chain_value(chain: Iterable[int]) -> Value:
    """The left-normed bracket a chain stands for."""
    indices = list(chain)
    value: Value = Kind("E", indices[0])
    for index in indices[1:]:
        value = Bracket(value, Kind("E", index))
    return value


# ============================================================
# Search
# ============================================================

def initial_chains(b: int) -> Tuple[ChainSum, ChainSum, ChainSum]:
    """
    X, XF and XH at n = 1, where X(1) = [E(1), E(2)].

    [X(1), F(b)] = [E(1), [E(2), F(b)]] + [[E(1), F(b)], E(2)]
                 = C(1, 2) E(2)   if b == 1
                 = -C(2, 1) E(1)  if b == 2
                 = 0              otherwise
    [X(1), H(b)] = -(C(b, 1) + C(b, 2)) [E(1), E(2)]
    """
    x = ChainSum.generator(1).bracket(2)
    if b == 1:
        xf = ChainSum.generator(2).scale(_cartan(1, 2))
    elif b == 2:
        xf = ChainSum.generator(1).scale(-_cartan(2, 1))
    else:
        xf = ChainSum()
    xh = x.scale(-(_cartan(b, 1) + _cartan(b, 2)))
    return x, xf, xh


def chain_search(steps: int = 1000, report_every: int = 500) -> Optional[int]:
    """
    Step the recurrence for b = 1, 2, 3 together.

    Returns:
        The first n at which [X(n), F(b)] vanishes for every b, or None
    """
    x, _, _ = initial_chains(1)
    xf = {}
    xh = {}
    for b in (1, 2, 3):
        _, xf[b], xh[b] = initial_chains(b)

    for n in range(2, steps + 1):
        k = n % 3 + 1
        if report_every and n % report_every == 0:
            logger.info("Checking %d (%d terms)", n, len(x))
        for b in (1, 2, 3):
            next_xf = xf[b].bracket(k)
            if k == b:
                next_xf = next_xf + xh[b]
            xf[b] = next_xf
            xh[b] = xh[b].bracket(k) - x.bracket(k).scale(_cartan(b, k))
        x = x.bracket(k)

        if all(xf[b].is_zero() for b in (1, 2, 3)):
            logger.info("Found zero at %d", n)
            return n

    return None
