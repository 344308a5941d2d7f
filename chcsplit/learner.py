"""
Spacer-backed learner.

Solves one sub-instance with z3's ``Fixedpoint`` engine in ``spacer`` mode
and returns either a candidate (one fragment per predicate, over the
predicate's formal parameters) or an ``UnsatVerdict``.

The background model is used as known-true knowledge: every LHS
application ``P(a)`` of a clause is strengthened with the accumulated
conjunction of ``P`` at ``a``.  The conjunction of the background with the
learned candidate then satisfies every non-negative clause.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Union

import z3

from .candidates import CandidateAccumulator
from .errors import LearnerError
from .instance.model import Instance, PredicateHandle
from .split import Candidate, UnsatVerdict

logger = logging.getLogger(__name__)

_ERROR_RELATION = "__chcsplit_error"


class SpacerLearner:
    """Learner collaborator running Spacer on a sub-instance."""

    def __init__(self, timeout_ms: Optional[int] = None):
        self.timeout_ms = timeout_ms

    def solve(
        self, instance: Instance, background: Optional[CandidateAccumulator] = None
    ) -> Union[Candidate, UnsatVerdict]:
        fp = z3.Fixedpoint()
        fp.set(engine="spacer")
        # Inlined relations come back with a trivial cover.
        fp.set("xform.inline_linear", False)
        fp.set("xform.inline_eager", False)
        if self.timeout_ms is not None:
            fp.set("timeout", int(self.timeout_ms))

        relations = [p for p in instance.preds if p.definition is None]
        for pred in relations:
            fp.register_relation(pred.decl)
        error = z3.Function(_ERROR_RELATION, z3.BoolSort())
        fp.register_relation(error)

        for clause in instance.clauses:
            if clause.vars:
                fp.declare_var(*clause.vars)
            body: List[z3.BoolRef] = list(clause.lhs_terms)
            for pred, args in clause.lhs_apps():
                body.append(instance.inline(instance.preds[pred].decl(*args)))
                if background is not None and pred in background:
                    known = background.conjunction(pred)
                    params = instance.preds[pred].params()
                    body.append(z3.substitute(known, *zip(params, args)) if params else known)
            if clause.rhs is None:
                head = error()
            elif instance.is_known(clause.rhs[0]):
                # Defined consequence: a constraint, checked like a query.
                pred, args = clause.rhs
                body.append(z3.Not(instance.inline(instance.preds[pred].decl(*args))))
                head = error()
            else:
                pred, args = clause.rhs
                head = instance.preds[pred].decl(*args)
            fp.rule(head, body or [z3.BoolVal(True)])

        try:
            res = fp.query(error())
        except z3.Z3Exception as e:
            raise LearnerError(f"spacer error on {instance.name or 'instance'}: {e}") from e

        if res == z3.sat:
            return UnsatVerdict("by learner")
        if res != z3.unsat:
            raise LearnerError(f"spacer returned unknown on {instance.name or 'instance'}")

        candidate: Dict[PredicateHandle, z3.BoolRef] = {}
        for pred in relations:
            try:
                cover = fp.get_cover_delta(-1, pred.decl)
            except z3.Z3Exception as e:
                raise LearnerError(f"no interpretation for {pred.name}: {e}") from e
            params = pred.params()
            candidate[pred.idx] = z3.substitute_vars(cover, *params) if params else cover
            logger.debug(f"{pred.name}: {candidate[pred.idx]}")
        return candidate
