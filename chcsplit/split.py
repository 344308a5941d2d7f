"""
Instance splitting.

Reasons separately on each negative clause of a (preprocessed) instance:

1. ``SplitDriver`` orders the negative clauses and, one step at a time, asks
   preprocessing for the sub-instance isolating the next clause.
2. ``work`` runs the learner on each sub-instance, merges the partial models
   into a ``CandidateAccumulator`` and stops at the first unsat verdict.

Clause order
============

Clauses are sorted ascending by

    (strictly negative, from unrolling, connectivity score)

and popped from the end, so strictly negative clauses come first, then
unrolling clauses, then the best connected ones.  Without the connectivity
heuristic the score is the negated clause index (insertion order).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol, Set, Tuple, Union

from .candidates import CandidateAccumulator
from .config import SplitConfig
from .errors import SplitError
from .instance.model import ClauseHandle, Exclusive, Instance, PredicateDefinitions
from .instance.preproc import Preprocessor, SplitPreprocessor, TrivialModel

logger = logging.getLogger(__name__)


# =============================================================================
# RESULTS
# =============================================================================

@dataclass(frozen=True)
class UnsatVerdict:
    """
    The instance is unsatisfiable.

    ``entry`` optionally carries the entry points (see
    ``chcsplit.unsat_core.entry_points.Entry``) explaining the contradiction.
    """
    reason: str = ""
    entry: Optional[object] = None

    def __str__(self) -> str:
        return f"unsat ({self.reason})" if self.reason else "unsat"


class _NoModel:
    """Returned by ``work`` outside inference mode: no contradiction found."""

    def __repr__(self) -> str:
        return "NO_MODEL"


NO_MODEL = _NoModel()

SplitResult = Union[CandidateAccumulator, UnsatVerdict, _NoModel]
# Learner answer: one fragment per predicate, over the formal parameters.
Candidate = PredicateDefinitions


class Learner(Protocol):
    def solve(
        self, instance: Instance, background: CandidateAccumulator
    ) -> Union[Candidate, UnsatVerdict]:
        ...


@dataclass(frozen=True)
class SplitInfo:
    clause: ClauseHandle
    handled: int
    total: int


# =============================================================================
# DRIVER
# =============================================================================

@dataclass
class Active:
    """Clauses left to isolate, highest priority last."""
    pending: List[ClauseHandle]
    total: int


@dataclass
class Inactive:
    """No splitting: the top-level instance is produced once."""
    fired: bool = False


def clause_score(instance: Instance, clause: ClauseHandle) -> int:
    """
    Connectivity of a negative clause.

    Counts, for each LHS predicate, the clauses using it in their LHS that
    have a consequence.  Hitting a positive clause (empty LHS) for one of
    the predicates resets the score: splitting on clauses whose predicates
    are backed by facts teaches little.
    """
    total = 0
    for pred in instance.clauses[clause].lhs_preds:
        lhs_clauses, rhs_clauses = instance.clauses_of(pred)
        for idx in lhs_clauses:
            if instance.clauses[idx].rhs is not None:
                total += 1
        for idx in rhs_clauses:
            if not instance.clauses[idx].lhs_preds:
                total = 0
                break
    return total


def split_order(instance: Instance, sort: bool = True) -> List[ClauseHandle]:
    """Negative clauses sorted ascending by priority."""
    keyed: List[Tuple[Tuple[bool, bool, int], ClauseHandle]] = []
    for clause in instance.neg_clauses():
        c = instance.clauses[clause]
        score = clause_score(instance, clause) if sort else -clause
        keyed.append(((c.is_strict_neg(), c.from_unrolling, score), clause))
    # Stable: equal keys keep insertion order.
    keyed.sort(key=lambda kc: kc[0])
    return [clause for _, clause in keyed]


class SplitDriver:
    """
    Produces one sub-instance per negative clause.

    ``advance`` returns a sub-instance, a ``TrivialModel`` or ``None`` once
    everything has been produced.
    """

    def __init__(
        self,
        instance: Instance,
        config: Optional[SplitConfig] = None,
        preprocessor: Optional[Preprocessor] = None,
    ):
        self.instance = instance
        self.config = config if config is not None else SplitConfig()
        self.preprocessor = preprocessor if preprocessor is not None else SplitPreprocessor()
        self.prev_clauses: Set[ClauseHandle] = set()
        # Keeps the top-level instance shared while the driver lives.
        instance.retain()

        self.state: Union[Active, Inactive]
        self.total = 1
        if self.config.enabled and len(instance.neg_clauses()) > 1:
            clauses = split_order(instance, self.config.sort)
            self.total = len(clauses)
            if len(clauses) <= 1:
                self.state = Inactive()
            else:
                self.state = Active(clauses, len(clauses))
        else:
            self.state = Inactive()

        if isinstance(self.state, Active):
            logger.debug(
                "split order (last first): "
                + ", ".join(f"#{c}" for c in self.state.pending)
            )

    def close(self) -> None:
        if self.instance is not None:
            self.instance.release()
            self.instance = None

    def __enter__(self) -> "SplitDriver":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def peek(self) -> Optional[SplitInfo]:
        """Next clause to split on, with the number handled so far and the total."""
        state = self.state
        if isinstance(state, Active) and state.pending:
            return SplitInfo(state.pending[-1], state.total - len(state.pending), state.total)
        return None

    def advance(self) -> Optional[Union[Instance, TrivialModel]]:
        state = self.state
        if isinstance(state, Inactive):
            if state.fired:
                return None
            state.fired = True
            return self.instance

        if not state.pending:
            return None
        clause = state.pending.pop()
        start = time.time()
        try:
            res = self.preprocessor.reduce(self.instance, clause, frozenset(self.prev_clauses))
        except Exception as e:
            raise SplitError(clause, e) from e
        self.prev_clauses.add(clause)
        logger.debug(f"sub-preprocessing on #{clause}: {(time.time() - start) * 1000:.1f}ms")
        return res


# =============================================================================
# SPLIT LOOP
# =============================================================================

def run_learner(
    instance: Instance, model: CandidateAccumulator, learner: Learner
) -> Union[Candidate, UnsatVerdict]:
    """Runs the learner on an instance, holding it for the duration of the call."""
    start = time.time()
    with instance.borrow():
        res = learner.solve(instance, model)
    logger.debug(f"learner: {(time.time() - start) * 1000:.1f}ms")
    return res


def work(
    instance: Instance,
    learner: Optional[Learner] = None,
    config: Optional[SplitConfig] = None,
    preprocessor: Optional[Preprocessor] = None,
) -> SplitResult:
    """
    Splits the instance if asked to do so, and solves it.

    Returns

    - the merged ``CandidateAccumulator`` if the instance is sat,
    - ``NO_MODEL`` if not in inference mode,
    - an ``UnsatVerdict`` if unsat.

    Assumes the instance is already preprocessed.
    """
    if config is None:
        config = SplitConfig()
    if config.infer and learner is None:
        raise ValueError("inference mode requires a learner")

    model = CandidateAccumulator(instance)
    progress = logging.INFO if config.step else logging.DEBUG

    with SplitDriver(instance, config, preprocessor) as splitter:
        while True:
            info = splitter.peek()
            if info is not None:
                logger.log(
                    progress,
                    f"Splitting on negative clause #{info.clause} ({info.handled + 1} of {info.total})",
                )

            res = splitter.advance()
            if res is None:
                break

            if isinstance(res, TrivialModel):
                if res.is_unsat():
                    return UnsatVerdict("by preprocessing")
                logger.info("sat by preproc")
                model.merge(res.model)
                continue

            if not config.infer:
                logger.info("Skipping learning...")
                continue

            logger.info("Starting learning...")
            verdict = run_learner(res, model, learner)
            if isinstance(verdict, UnsatVerdict):
                return verdict

            logger.info("sat")
            this_model = res.definitions_from(verdict)
            ownership = res.ownership()
            if isinstance(ownership, Exclusive):
                this_model = ownership.simplify_in_place(this_model)
            else:
                logger.debug(f"{res.name or 'instance'} is shared, merging raw candidate")
            model.merge(this_model)

    if config.infer:
        return model
    return NO_MODEL
