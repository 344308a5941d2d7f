"""
Entry point reconstruction.

Given positive samples of a *working* instance (obtained from the original
one by signature reduction, splitting, predicate elimination...), recovers
the ground facts of the *original* instance that justify them.

Safe and positive predicates
============================

A predicate of the working instance is *safe* when it is defined and its
definition only mentions safe predicates (least fixpoint).  Safe predicates
are written to the oracle once as background definitions, so they behave as
defined relations.  A safe predicate whose definition mentions no predicate
at all is *positive*.

Reconstruction of a sample ``P(v)`` looks for a clause ``... → P(args)`` of
the original instance whose LHS predicates are all safe (positive clauses
first), and asks the oracle for an assignment with ``args = v``.  The LHS
applications evaluated under that assignment are recorded when their
predicate is positive; other safe predicates are already accounted for by
the background definitions and are not re-queued.
"""

from __future__ import annotations

import logging
from typing import FrozenSet, List, Sequence, Set, Tuple

import z3

from ..data.sample import UNKNOWN, Sample, samples_from_model, value_to_z3
from ..errors import IllegalClause, OracleError, ReconstructionError, UnreconstructableSample
from ..instance.model import ClauseHandle, Instance, PredicateHandle
from ..oracle import OracleSession

logger = logging.getLogger(__name__)


def safe_predicates(instance: Instance) -> Tuple[FrozenSet[PredicateHandle], FrozenSet[PredicateHandle]]:
    """Safe predicates of ``instance`` and their positive subset."""
    safe_preds: Set[PredicateHandle] = set()
    pos_preds: Set[PredicateHandle] = set()
    fixpoint = False
    while not fixpoint:
        fixpoint = True
        for pred in instance.preds:
            if pred.idx in safe_preds or pred.definition is None:
                continue
            refs = instance.preds_of_definition(pred.idx)
            if not refs:
                pos_preds.add(pred.idx)
            if refs <= safe_preds:
                fixpoint = False
                safe_preds.add(pred.idx)
    return frozenset(safe_preds), frozenset(pos_preds)


class ProofReconstructor:
    """Reconstructs original-instance entry points for a list of samples."""

    def __init__(
        self,
        original: Instance,
        instance: Instance,
        to_do: Sequence[Sample],
        session: OracleSession,
    ):
        if len(original.preds) != len(instance.preds):
            raise ReconstructionError(
                f"original instance has {len(original.preds)} predicate(s), "
                f"working instance has {len(instance.preds)}"
            )
        for orig, pred in zip(original.preds, instance.preds):
            if orig.name != pred.name:
                raise ReconstructionError(
                    f"predicate #{pred.idx} is {orig.name} in the original instance "
                    f"but {pred.name} in the working instance"
                )

        self.original = original
        self.instance = instance
        self.to_do: List[Sample] = list(to_do)
        self.session = session
        self.samples: Set[Sample] = set()
        self.safe_preds, self.pos_preds = safe_predicates(instance)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "safe predicates: "
                + ", ".join(instance.preds[p].name for p in sorted(self.safe_preds))
            )

    def clauses_for(self, pred: PredicateHandle) -> Tuple[List[ClauseHandle], List[ClauseHandle]]:
        """
        Clauses of the original instance eligible to reconstruct ``pred``:
        the positive clauses for ``pred``, and the clauses with ``pred`` as RHS
        whose LHS predicates are all safe.
        """
        pos: List[ClauseHandle] = []
        others: List[ClauseHandle] = []
        for idx in self.original.rhs_clauses_of(pred):
            clause_preds = self.original.clauses[idx].lhs_preds
            if not clause_preds:
                pos.append(idx)
            elif all(p in self.safe_preds for p in clause_preds):
                others.append(idx)
        return pos, others

    def witness(self, pred: PredicateHandle, sample: Sample, clause: ClauseHandle) -> bool:
        """
        Tries to reconstruct ``sample`` from ``clause``.

        Returns ``True`` on success, in which case the positive LHS samples
        of the witness have been added to ``self.samples``.
        """
        c = self.original.clauses[clause]
        if c.rhs is None:
            raise IllegalClause(clause)
        rhs_pred, rhs_args = c.rhs
        if rhs_pred != pred:
            raise ReconstructionError(
                f"clause #{clause} concludes {self.original.preds[rhs_pred].name}, "
                f"not {self.original.preds[pred].name}",
                clause=clause, sample=sample,
            )
        if len(rhs_args) != len(sample.args):
            raise ReconstructionError(
                f"sample {sample} does not match the original signature of clause #{clause}",
                clause=clause, sample=sample,
            )

        found: List[Sample] = []
        try:
            with self.session.scope():
                self.session.declare(c.vars)
                for term in c.lhs_terms:
                    self.session.assert_term(term)
                for lhs_pred, args in c.lhs_apps():
                    self.session.assert_pred_app(lhs_pred, args, original=True)
                for arg, val in zip(rhs_args, sample.args):
                    if val is not UNKNOWN:
                        self.session.assert_term(arg == value_to_z3(val, arg.sort()))

                if not self.session.check_sat():
                    return False
                model = self.session.get_model()
                # Reconstruct all LHS applications.
                for lhs_pred, argss in c.lhs_preds.items():
                    samples = samples_from_model(lhs_pred, argss, model)
                    if lhs_pred in self.pos_preds:
                        found.extend(samples)
        except OracleError as e:
            raise ReconstructionError(
                f"oracle failure on clause #{clause} for sample {sample}: {e}",
                clause=clause, sample=sample,
            ) from e
        except z3.Z3Exception as e:
            raise ReconstructionError(
                f"z3 failure on clause #{clause} for sample {sample}: {e}",
                clause=clause, sample=sample,
            ) from e
        except ValueError as e:
            # Model values without a sample representation, e.g. irrational reals.
            raise ReconstructionError(
                f"unsupported value on clause #{clause} for sample {sample}: {e}",
                clause=clause, sample=sample,
            ) from e

        self.samples.update(found)
        return True

    def reconstruct(self, pred: PredicateHandle, sample: Sample) -> None:
        """Reconstructs a single positive sample."""
        logger.debug(f"working on {sample.to_string(self.original)}")
        pos, others = self.clauses_for(pred)
        logger.debug(f"{len(pos)} positive clause(s), {len(others)} usable clause(s)")

        for clause in pos:
            if self.witness(pred, sample, clause):
                logger.debug(f"  reconstructed using positive clause #{clause}")
                return
        for clause in others:
            if self.witness(pred, sample, clause):
                logger.debug(f"  reconstructed using non-positive clause #{clause}")
                return

        raise UnreconstructableSample(sample, sample.to_string(self.original))

    def run(self) -> FrozenSet[Sample]:
        """Reconstructs the positive samples."""
        if self.safe_preds:
            self.session.write_definitions(self.instance)

        while self.to_do:
            sample = self.to_do.pop()
            self.reconstruct(sample.pred, sample)

        self.session.reset()
        return frozenset(self.samples)
