"""
Counterexample search over nested brackets of E generators.

For a fixed b in 1..3 and the schedule k(n) = n % 3 + 1, the search follows

    X(0)    = E(1)
    X(n+1)  = [X(n), E(k)]
    XF(n)   = [X(n), F(b)]
    XH(n)   = [X(n), H(b)]

using the Jacobi identity to step XF and XH without rebuilding the full
bracket each time:

    XF(n+1) = [XF(n), E(k)] + XH(n)     when k == b
            = [XF(n), E(k)]             otherwise
    XH(n+1) = [XH(n), E(k)] - C(b, k) * [X(n), E(k)]

Each step is rewritten with the engine's rules and its terms collected. The
search stops when XF vanishes.
"""

import logging
from typing import Dict, List, Optional

from .engine import RuleEngine, parse_expression
from .rewriter import Scope
from .values import Bracket, E, F, H, Number, Value, ZERO

logger = logging.getLogger(__name__)

GENERATOR_INDICES = (1, 2, 3)

NEXT_X = parse_expression("[nx, E(k)]")
NEXT_XF = parse_expression("[nx_f, E(k)]")
NEXT_XF_DIAGONAL = parse_expression("[nx_f, E(k)] + nx_h")
NEXT_XH = parse_expression("[nx_h, E(k)] - C(b, k) * [nx, E(k)]")


def schedule(n: int) -> int:
    """Index of the generator bracketed on at step n."""
    return n % 3 + 1


class SearchStep:
    """Snapshot of the three running values after one step."""

    __slots__ = ('n', 'k', 'x', 'xf', 'xh')

    def __init__(self, n: int, k: int, x: Value, xf: Value, xh: Value):
        self.n = n
        self.k = k
        self.x = x
        self.xf = xf
        self.xh = xh

    def to_dict(self) -> Dict:
        return {
            "n": self.n,
            "k": self.k,
            "x": str(self.x),
            "xf": str(self.xf),
            "xh": str(self.xh),
        }

    def __repr__(self) -> str:
        return f"SearchStep(n={self.n}, k={self.k}, xf={self.xf})"


class SearchResult:
    """Outcome of a search for one b."""

    def __init__(self, b: int, steps: int, zero_at: Optional[int],
                 history: List[SearchStep]):
        self.b = b
        self.steps = steps
        self.zero_at = zero_at
        self.history = history

    @property
    def found(self) -> bool:
        return self.zero_at is not None

    def __bool__(self) -> bool:
        return self.found

    def summary(self) -> str:
        if self.found:
            return f"b={self.b}: [X(n), F({self.b})] vanishes at n={self.zero_at}"
        return f"b={self.b}: no zero in {self.steps} steps"

    def __repr__(self) -> str:
        return f"SearchResult(b={self.b}, steps={self.steps}, zero_at={self.zero_at})"


def initial_values(b: int, engine: RuleEngine) -> SearchStep:
    """X(0), XF(0) and XH(0) for generator index b."""
    x = E(1)
    xf = engine.collect(Bracket(x, F(b)))
    xh = engine.collect(Bracket(x, H(b)))
    return SearchStep(0, schedule(0), x, xf, xh)


def advance(state: SearchStep, b: int, engine: RuleEngine) -> SearchStep:
    """Compute step n+1 from step n."""
    n = state.n + 1
    k = schedule(n)
    scope = Scope({
        "b": Number(b),
        "k": Number(k),
        "nx": state.x,
        "nx_f": state.xf,
        "nx_h": state.xh,
    })
    x = engine.evaluate(NEXT_X, scope)
    xf = engine.evaluate(NEXT_XF_DIAGONAL if k == b else NEXT_XF, scope)
    xh = engine.evaluate(NEXT_XH, scope)
    return SearchStep(n, k, x, xf, xh)


def search(b: int, steps: int = 6, engine: Optional[RuleEngine] = None,
           keep_history: bool = True, stop_on_zero: bool = True) -> SearchResult:
    """
    Step the recurrence for one b until XF vanishes or steps run out.

    With stop_on_zero=False every step up to `steps` is run and the
    result records the first zero.

    Args:
        b: Index of the F generator, 1..3
        steps: Maximum number of steps
        engine: Rule engine to rewrite with (default: bundled rules)
        keep_history: Record every step in the result
        stop_on_zero: Return at the first step where XF vanishes

    Returns:
        SearchResult
    """
    if b not in GENERATOR_INDICES:
        raise ValueError(f"b must be one of {GENERATOR_INDICES}, got {b}")
    if engine is None:
        engine = RuleEngine.bundled()

    state = initial_values(b, engine)
    history = [state] if keep_history else []
    zero_at = None
    logger.debug("b=%d n=0 xf=%s xh=%s", b, state.xf, state.xh)

    for _ in range(steps):
        state = advance(state, b, engine)
        if keep_history:
            history.append(state)
        logger.info("b=%d n=%d k=%d xf=%s", b, state.n, state.k, state.xf)
        logger.debug("b=%d n=%d xh=%s", b, state.n, state.xh)
        if state.xf == ZERO and zero_at is None:
            logger.info("b=%d: zero found at n=%d", b, state.n)
            zero_at = state.n
            if stop_on_zero:
                return SearchResult(b, state.n, zero_at, history)

    return SearchResult(b, steps, zero_at, history)


def search_all(steps: int = 6, engine: Optional[RuleEngine] = None) -> Dict[int, SearchResult]:
    """
    Run the search for every b, each for the full number of steps.

    Returns:
        Mapping b -> SearchResult
    """
    if engine is None:
        engine = RuleEngine.bundled()
    return {b: search(b, steps, engine, stop_on_zero=False)
            for b in GENERATOR_INDICES}


def first_common_zero(results: Dict[int, SearchResult]) -> Optional[int]:
    """First step at which XF vanishes for every b, or None."""
    histories = [r.history for r in results.values()]
    if not histories or not all(histories):
        return None
    for snapshots in zip(*histories):
        if all(s.xf == ZERO for s in snapshots):
            return snapshots[0].n
    return None
