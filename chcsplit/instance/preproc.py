"""
Split preprocessing.

Builds the sub-instance isolating one negative clause: every non-negative
clause is kept, every other negative clause is dropped.  Negative clauses
isolated by previous splits have already been solved; their knowledge
reaches the learner through the background model, not through the
sub-instance.

The result is either the reduced sub-instance or a ``TrivialModel`` when
the sub-instance can be decided without a learner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, Optional, Protocol, Union

import z3

from .model import ClauseHandle, Instance, PredicateDefinitions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrivialModel:
    """
    Sub-instance decided by preprocessing alone.

    ``model`` is a (possibly empty) partial model when the sub-instance is
    sat, ``None`` when it is trivially unsat.
    """
    model: Optional[PredicateDefinitions]

    def is_unsat(self) -> bool:
        return self.model is None


PreprocResult = Union[Instance, TrivialModel]


class Preprocessor(Protocol):
    def reduce(
        self,
        instance: Instance,
        isolated_clause: ClauseHandle,
        excluded_clauses: AbstractSet[ClauseHandle],
    ) -> PreprocResult:
        ...


class SplitPreprocessor:
    """Default preprocessing collaborator used by the split driver."""

    def __init__(self, timeout_ms: Optional[int] = None):
        self.timeout_ms = timeout_ms

    def reduce(
        self,
        instance: Instance,
        isolated_clause: ClauseHandle,
        excluded_clauses: AbstractSet[ClauseHandle],
    ) -> PreprocResult:
        clause = instance.clauses[isolated_clause]
        if clause.rhs is not None:
            raise ValueError(f"cannot split on non-negative clause #{isolated_clause}")

        keep = [c.idx for c in instance.clauses if c.rhs is not None or c.idx == isolated_clause]
        name = f"{instance.name or 'instance'}/split#{isolated_clause}"
        sub = instance.derive(name, keep)
        logger.debug(
            f"{name}: kept {len(keep)} of {len(instance.clauses)} clause(s), "
            f"{len(excluded_clauses)} previously isolated"
        )

        trivial = self.trivial_model(sub)
        if trivial is not None:
            return trivial
        return sub

    def trivial_model(self, instance: Instance) -> Optional[TrivialModel]:
        """
        Decide ``instance`` without learning when possible.

        - No negative clause left: sat, nothing to learn.  ``reduce`` always
          keeps the isolated clause, so only direct callers checking an
          arbitrary instance reach this case.
        - The only negative clause has no LHS predicate: its side condition
          alone decides the sub-instance.
        """
        negs = instance.neg_clauses()
        if not negs:
            return TrivialModel({})
        if len(negs) > 1:
            return None

        clause = instance.clauses[negs[0]]
        if clause.lhs_preds:
            return None

        solver = z3.Solver()
        if self.timeout_ms is not None:
            solver.set("timeout", int(self.timeout_ms))
        solver.add(*clause.lhs_terms)
        res = solver.check()
        if res == z3.unsat:
            logger.debug(f"{instance.name}: negative clause #{clause.idx} is vacuous")
            return TrivialModel({})
        if res == z3.sat:
            logger.debug(f"{instance.name}: negative clause #{clause.idx} is a ground contradiction")
            return TrivialModel(None)
        return None
