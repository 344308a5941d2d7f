"""
Frontend: load SMT-LIB2 HORN problems into an ``Instance``.

Accepted assertion shapes (after stripping universal quantifiers):

    (=> body head)      head is a predicate application or false
    (not body)          negative clause
    head                fact

where ``body`` is a conjunction of predicate applications and side
conditions.  A head that is neither a predicate application nor false is
moved to the body, negated.  Every uninterpreted Bool-valued function (or
free Bool constant) is a predicate.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import z3

from ..instance.model import Instance, PredicateHandle

logger = logging.getLogger(__name__)


class HornFormatError(ValueError):
    """Assertion that is not a Horn clause."""


def load_horn_file(path: Path) -> Instance:
    path = Path(path)
    with open(path) as f:
        text = f.read()
    return load_horn_string(text, name=path.stem)


def load_horn_string(text: str, name: str = "") -> Instance:
    try:
        assertions = z3.parse_smt2_string(text)
    except z3.Z3Exception as e:
        raise HornFormatError(f"cannot parse {name or 'input'}: {e}") from e
    loader = _HornLoader(Instance(name))
    for n, assertion in enumerate(assertions):
        loader.add_assertion(assertion, n)
    logger.debug(
        f"loaded {name or 'instance'}: {len(loader.instance.preds)} predicate(s), "
        f"{len(loader.instance.clauses)} clause(s)"
    )
    return loader.instance


class _HornLoader:
    def __init__(self, instance: Instance):
        self.instance = instance
        self._preds: Dict[int, PredicateHandle] = {}

    def add_assertion(self, assertion: z3.BoolRef, n: int) -> None:
        variables, matrix = _strip_forall(assertion)
        bound = {v.get_id() for v in variables}

        if z3.is_implies(matrix):
            body, head = matrix.arg(0), matrix.arg(1)
        elif z3.is_not(matrix):
            body, head = matrix.arg(0), z3.BoolVal(False)
        else:
            body, head = z3.BoolVal(True), matrix

        terms: List[z3.BoolRef] = []
        apps: List[Tuple[PredicateHandle, Tuple[z3.ExprRef, ...]]] = []
        for conjunct in _conjuncts(body):
            pred = self._pred_of(conjunct, bound)
            if pred is None:
                self._check_term(conjunct, bound, n)
                terms.append(conjunct)
            else:
                apps.append((pred, tuple(conjunct.children())))

        rhs: Optional[Tuple[PredicateHandle, Tuple[z3.ExprRef, ...]]] = None
        if not z3.is_false(head):
            pred = self._pred_of(head, bound)
            if pred is None:
                self._check_term(head, bound, n)
                terms.append(z3.Not(head))
            else:
                rhs = (pred, tuple(head.children()))

        self.instance.add_clause(variables, terms, apps, rhs)

    def _pred_of(self, expr: z3.ExprRef, bound: Set[int]) -> Optional[PredicateHandle]:
        if not z3.is_app(expr) or not z3.is_bool(expr):
            return None
        decl = expr.decl()
        if decl.kind() != z3.Z3_OP_UNINTERPRETED:
            return None
        if expr.num_args() == 0 and expr.get_id() in bound:
            return None
        key = decl.get_id()
        if key not in self._preds:
            sorts = [decl.domain(i) for i in range(decl.arity())]
            self._preds[key] = self.instance.add_predicate(decl.name(), sorts).idx
        return self._preds[key]

    def _check_term(self, term: z3.ExprRef, bound: Set[int], n: int) -> None:
        """Side conditions may not hide predicate applications."""
        todo = [term]
        while todo:
            e = todo.pop()
            if z3.is_quantifier(e):
                raise HornFormatError(f"assertion #{n}: nested quantifier in side condition")
            if e is not term and self._pred_of(e, bound) is not None:
                raise HornFormatError(f"assertion #{n}: predicate application under {term.decl()}")
            if z3.is_app(e):
                todo.extend(e.children())


def _strip_forall(expr: z3.BoolRef) -> Tuple[List[z3.ExprRef], z3.BoolRef]:
    variables: List[z3.ExprRef] = []
    while z3.is_quantifier(expr):
        if not expr.is_forall():
            raise HornFormatError(f"existential quantifier at clause level: {expr}")
        consts = [z3.Const(expr.var_name(i), expr.var_sort(i)) for i in range(expr.num_vars())]
        # De Bruijn index 0 is the innermost (last) bound variable.
        expr = z3.substitute_vars(expr.body(), *reversed(consts))
        variables.extend(consts)
    return variables, expr


def _conjuncts(expr: z3.BoolRef) -> List[z3.BoolRef]:
    if z3.is_true(expr):
        return []
    if z3.is_and(expr):
        res: List[z3.BoolRef] = []
        for child in expr.children():
            res.extend(_conjuncts(child))
        return res
    return [expr]
