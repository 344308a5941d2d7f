"""
CHC instance representation.

An instance is an indexed table of predicates and an indexed table of
Horn clauses over z3 terms:

    lhs_terms ∧ P1(a1) ∧ ... ∧ Pk(ak) → P(b)      (or → false)

Predicate and clause handles are plain ``int`` indices, stable for the
lifetime of one instance.  Sub-instances produced by splitting share the
predicate layout of the instance they come from, so predicate indices are
comparable across them; clause indices are not.

Predicates may carry a *definition* (set by preprocessing or recovered from
a model).  Definitions are z3 formulas over the predicate's formal
parameters and may mention other predicates of the same instance.

Ownership
---------
Instances are shared between the split driver, sub-instances and learners.
Mutation (``simplify_in_place``) is only permitted through an ``Exclusive``
handle, obtained from ``Instance.ownership()`` when no other holder is
registered through ``retain``/``borrow``.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple, Union

import z3

logger = logging.getLogger(__name__)

PredicateHandle = int
ClauseHandle = int

Args = Tuple[z3.ExprRef, ...]
# One fragment per predicate, as produced by a learner or by preprocessing.
PredicateDefinitions = Dict[PredicateHandle, z3.BoolRef]


# =============================================================================
# PREDICATES
# =============================================================================

@dataclass(eq=False)
class PredicateDefinition:
    """Definition ``P(params) := body``."""
    params: Args
    body: z3.BoolRef

    def apply(self, args: Sequence[z3.ExprRef]) -> z3.BoolRef:
        if len(args) != len(self.params):
            raise ValueError(
                f"definition expects {len(self.params)} argument(s), got {len(args)}"
            )
        if not self.params:
            return self.body
        return z3.substitute(self.body, *zip(self.params, args))


@dataclass(eq=False)
class Predicate:
    """
    A relational predicate.

    ``sorts`` is the current (possibly reduced) signature, ``original_sorts``
    the signature before reduction; ``original_sig_map[i]`` is the original
    position of current argument ``i``.
    """
    idx: PredicateHandle
    name: str
    sorts: Tuple[z3.SortRef, ...]
    original_sorts: Optional[Tuple[z3.SortRef, ...]] = None
    original_sig_map: Optional[Tuple[int, ...]] = None
    definition: Optional[PredicateDefinition] = None
    decl: z3.FuncDeclRef = field(init=False, repr=False)

    def __post_init__(self):
        self.sorts = tuple(self.sorts)
        if self.original_sorts is None:
            self.original_sorts = self.sorts
        else:
            self.original_sorts = tuple(self.original_sorts)
        if self.original_sig_map is None:
            if len(self.sorts) != len(self.original_sorts):
                raise ValueError(f"predicate {self.name}: reduced signature without a position map")
            self.original_sig_map = tuple(range(len(self.sorts)))
        else:
            self.original_sig_map = tuple(self.original_sig_map)
        if len(self.original_sig_map) != len(self.sorts):
            raise ValueError(f"predicate {self.name}: position map does not match its signature")
        for var, old in enumerate(self.original_sig_map):
            if not 0 <= old < len(self.original_sorts):
                raise ValueError(f"predicate {self.name}: position {old} out of the original signature")
            if self.original_sorts[old] != self.sorts[var]:
                raise ValueError(f"predicate {self.name}: sort mismatch at position {var}")
        self.decl = z3.Function(self.name, *self.sorts, z3.BoolSort())

    @property
    def arity(self) -> int:
        return len(self.sorts)

    def params(self) -> Args:
        """Formal parameters, used by definitions and candidate fragments."""
        return tuple(z3.Const(f"{self.name}!{i}", s) for i, s in enumerate(self.sorts))

    def is_reduced(self) -> bool:
        return len(self.sorts) != len(self.original_sorts)

    def __str__(self) -> str:
        return self.name


# =============================================================================
# CLAUSES
# =============================================================================

@dataclass(eq=False)
class Clause:
    """
    ``lhs_terms ∧ lhs_preds → rhs``.

    ``lhs_preds`` maps a predicate index to the list of its applications in
    the LHS, in insertion order.  ``rhs`` is ``None`` for negative clauses.
    """
    idx: ClauseHandle
    vars: Tuple[z3.ExprRef, ...]
    lhs_terms: List[z3.BoolRef]
    lhs_preds: Dict[PredicateHandle, List[Args]]
    rhs: Optional[Tuple[PredicateHandle, Args]]
    from_unrolling: bool = False
    strict: bool = True

    def is_negative(self) -> bool:
        return self.rhs is None

    def is_strict_neg(self) -> bool:
        """Negative, and not obtained through unrolling-like transformations."""
        return self.rhs is None and self.strict

    def is_positive(self) -> bool:
        return self.rhs is not None and not self.lhs_preds

    def lhs_apps(self) -> Iterator[Tuple[PredicateHandle, Args]]:
        for pred, argss in self.lhs_preds.items():
            for args in argss:
                yield pred, args

    def to_string_info(self, preds: Sequence[Predicate]) -> str:
        lhs = [str(t) for t in self.lhs_terms]
        for pred, args in self.lhs_apps():
            lhs.append(_render_app(preds[pred], args))
        if self.rhs is None:
            rhs = "false"
        else:
            rhs = _render_app(preds[self.rhs[0]], self.rhs[1])
        tags = []
        if self.from_unrolling:
            tags.append("unrolling")
        if not self.strict:
            tags.append("non-strict")
        suffix = f"  [{', '.join(tags)}]" if tags else ""
        return "#{}: {} => {}{}".format(self.idx, " /\\ ".join(lhs) or "true", rhs, suffix)


def _render_app(pred: Predicate, args: Args) -> str:
    if not args:
        return f"({pred.name})"
    return "({} {})".format(pred.name, " ".join(str(a) for a in args))


# =============================================================================
# OWNERSHIP
# =============================================================================

@dataclass(frozen=True)
class Exclusive:
    """Handle on an instance nobody else holds: in-place mutation permitted."""
    instance: "Instance"

    def simplify_in_place(self, definitions: PredicateDefinitions) -> PredicateDefinitions:
        return self.instance._simplify_pred_defs(definitions)


@dataclass(frozen=True)
class Shared:
    """Handle on an instance with other outstanding holders: read only."""
    instance: "Instance"


Ownership = Union[Exclusive, Shared]


# =============================================================================
# INSTANCE
# =============================================================================

class Instance:
    """A CHC problem: predicates and clauses."""

    def __init__(self, name: str = ""):
        self.name = name
        self.preds: List[Predicate] = []
        self.clauses: List[Clause] = []
        self._lhs_clauses: Dict[PredicateHandle, List[ClauseHandle]] = {}
        self._rhs_clauses: Dict[PredicateHandle, List[ClauseHandle]] = {}
        self._decls: Dict[int, PredicateHandle] = {}
        self._holders = 0
        # Expansions of defined predicate applications, filled by in-place
        # simplification only.
        self._inline_cache: Dict[int, Tuple[z3.ExprRef, z3.ExprRef]] = {}

    # ── construction ─────────────────────────────────────────────────────

    def add_predicate(
        self,
        name: str,
        sorts: Sequence[z3.SortRef],
        original_sorts: Optional[Sequence[z3.SortRef]] = None,
        original_sig_map: Optional[Sequence[int]] = None,
    ) -> Predicate:
        if any(p.name == name for p in self.preds):
            raise ValueError(f"predicate {name} declared twice")
        pred = Predicate(
            len(self.preds), name, tuple(sorts),
            original_sorts=tuple(original_sorts) if original_sorts is not None else None,
            original_sig_map=tuple(original_sig_map) if original_sig_map is not None else None,
        )
        self.preds.append(pred)
        self._lhs_clauses[pred.idx] = []
        self._rhs_clauses[pred.idx] = []
        self._decls[pred.decl.get_id()] = pred.idx
        return pred

    def add_clause(
        self,
        vars: Sequence[z3.ExprRef],
        lhs_terms: Sequence[z3.BoolRef],
        lhs_preds: Sequence[Tuple[PredicateHandle, Sequence[z3.ExprRef]]],
        rhs: Optional[Tuple[PredicateHandle, Sequence[z3.ExprRef]]],
        from_unrolling: bool = False,
        strict: bool = True,
    ) -> Clause:
        apps: Dict[PredicateHandle, List[Args]] = {}
        for pred, args in lhs_preds:
            self._check_app(pred, args)
            args = tuple(args)
            # Duplicate applications carry no information.
            known = apps.setdefault(pred, [])
            if not any(_same_args(args, other) for other in known):
                known.append(args)
        if rhs is not None:
            self._check_app(rhs[0], rhs[1])
            rhs = (rhs[0], tuple(rhs[1]))
        clause = Clause(
            len(self.clauses), tuple(vars), list(lhs_terms), apps, rhs,
            from_unrolling=from_unrolling, strict=strict,
        )
        self.clauses.append(clause)
        for pred in apps:
            self._lhs_clauses[pred].append(clause.idx)
        if rhs is not None:
            self._rhs_clauses[rhs[0]].append(clause.idx)
        return clause

    def _check_app(self, pred: PredicateHandle, args: Sequence[z3.ExprRef]) -> None:
        if not 0 <= pred < len(self.preds):
            raise ValueError(f"unknown predicate index {pred}")
        if len(args) != self.preds[pred].arity:
            raise ValueError(
                f"predicate {self.preds[pred].name} applied to {len(args)} argument(s), "
                f"expected {self.preds[pred].arity}"
            )

    def set_definition(self, pred: PredicateHandle, body: z3.BoolRef,
                       params: Optional[Args] = None) -> None:
        """Define ``pred``; ``body`` ranges over ``params`` (default: formal parameters)."""
        predicate = self.preds[pred]
        if params is None:
            params = predicate.params()
        predicate.definition = PredicateDefinition(tuple(params), body)
        self._inline_cache.clear()

    def derive(self, name: str, clauses: Sequence[ClauseHandle]) -> "Instance":
        """
        New instance with the same predicates (and definitions) and a subset
        of the clauses, re-indexed in the given order.
        """
        nu = Instance(name)
        for pred in self.preds:
            copy = nu.add_predicate(pred.name, pred.sorts, pred.original_sorts, pred.original_sig_map)
            copy.definition = pred.definition
        for idx in clauses:
            c = self.clauses[idx]
            nu.add_clause(
                c.vars, c.lhs_terms, list(c.lhs_apps()), c.rhs,
                from_unrolling=c.from_unrolling, strict=c.strict,
            )
        return nu

    # ── queries ──────────────────────────────────────────────────────────

    def neg_clauses(self) -> List[ClauseHandle]:
        return [c.idx for c in self.clauses if c.rhs is None]

    def clauses_of(self, pred: PredicateHandle) -> Tuple[List[ClauseHandle], List[ClauseHandle]]:
        """Clauses mentioning ``pred`` in their LHS, and clauses with ``pred`` as RHS."""
        return self._lhs_clauses[pred], self._rhs_clauses[pred]

    def rhs_clauses_of(self, pred: PredicateHandle) -> List[ClauseHandle]:
        return self._rhs_clauses[pred]

    def is_known(self, pred: PredicateHandle) -> bool:
        return self.preds[pred].definition is not None

    def pred_of_decl(self, decl: z3.FuncDeclRef) -> Optional[PredicateHandle]:
        return self._decls.get(decl.get_id())

    def preds_of_definition(self, pred: PredicateHandle) -> FrozenSet[PredicateHandle]:
        """Predicates mentioned by the definition of ``pred`` (empty if undefined)."""
        definition = self.preds[pred].definition
        if definition is None:
            return frozenset()
        return self.preds_in(definition.body)

    def preds_in(self, expr: z3.ExprRef) -> FrozenSet[PredicateHandle]:
        found = set()
        seen = set()
        todo = [expr]
        while todo:
            e = todo.pop()
            if e.get_id() in seen:
                continue
            seen.add(e.get_id())
            if z3.is_quantifier(e):
                todo.append(e.body())
                continue
            if not z3.is_app(e):
                continue
            pred = self.pred_of_decl(e.decl())
            if pred is not None:
                found.add(pred)
            todo.extend(e.children())
        return frozenset(found)

    def inline(self, expr: z3.ExprRef) -> z3.ExprRef:
        """
        Replace every application of a defined predicate in ``expr`` by its
        definition, recursively.  Applications of undefined predicates are
        left untouched.
        """
        return _Inliner(self, {}).run(expr)

    # ── ownership ────────────────────────────────────────────────────────

    def retain(self) -> None:
        self._holders += 1

    def release(self) -> None:
        if self._holders == 0:
            raise RuntimeError(f"instance {self.name!r} released more often than retained")
        self._holders -= 1

    @contextlib.contextmanager
    def borrow(self) -> Iterator["Instance"]:
        self.retain()
        try:
            yield self
        finally:
            self.release()

    def ownership(self) -> Ownership:
        if self._holders == 0:
            return Exclusive(self)
        return Shared(self)

    # ── models ───────────────────────────────────────────────────────────

    def definitions_from(self, candidate: PredicateDefinitions) -> PredicateDefinitions:
        """
        Turn a learner candidate into predicate definitions for this instance.

        Predicates defined by this instance (e.g. eliminated by preprocessing)
        and absent from the candidate are added with their own definition.
        """
        defs: PredicateDefinitions = {}
        for pred, fragment in candidate.items():
            if not 0 <= pred < len(self.preds):
                raise ValueError(f"candidate for unknown predicate index {pred}")
            if not z3.is_bool(fragment):
                raise ValueError(f"candidate for {self.preds[pred].name} is not a boolean: {fragment}")
            defs[pred] = fragment
        for pred in self.preds:
            if pred.idx not in defs and pred.definition is not None:
                defs[pred.idx] = pred.definition.apply(pred.params())
        return defs

    def _simplify_pred_defs(self, definitions: PredicateDefinitions) -> PredicateDefinitions:
        inliner = _Inliner(self, self._inline_cache)
        for pred, fragment in definitions.items():
            definitions[pred] = z3.simplify(inliner.run(fragment))
        logger.debug(f"simplified {len(definitions)} definition(s) in {self.name or 'instance'}")
        return definitions

    # ── display ──────────────────────────────────────────────────────────

    def to_string_info(self) -> str:
        lines = [f"instance {self.name}" if self.name else "instance"]
        for pred in self.preds:
            sig = " ".join(str(s) for s in pred.sorts)
            line = f"  pred {pred.name} ({sig})"
            if pred.is_reduced():
                line += f"  original arity {len(pred.original_sorts)}"
            if pred.definition is not None:
                line += f"  := {pred.definition.body}"
            lines.append(line)
        for clause in self.clauses:
            lines.append("  " + clause.to_string_info(self.preds))
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Instance({self.name!r}, {len(self.preds)} preds, {len(self.clauses)} clauses)"


def _same_args(a: Args, b: Args) -> bool:
    return len(a) == len(b) and all(x.eq(y) for x, y in zip(a, b))


class _Inliner:
    """Bottom-up expansion of defined predicate applications."""

    def __init__(self, instance: Instance, cache: Dict[int, Tuple[z3.ExprRef, z3.ExprRef]]):
        self.instance = instance
        # id -> (expr, expansion); the key expression is kept alive so its id
        # cannot be reused by z3.
        self.cache = cache

    def run(self, expr: z3.ExprRef) -> z3.ExprRef:
        return self._expand(expr, ())

    def _expand(self, expr: z3.ExprRef, stack: Tuple[PredicateHandle, ...]) -> z3.ExprRef:
        if not z3.is_app(expr):
            return expr
        pred = self.instance.pred_of_decl(expr.decl())
        if pred is None and expr.num_args() == 0:
            return expr
        key = expr.get_id()
        if not stack and key in self.cache:
            return self.cache[key][1]
        children = [self._expand(c, stack) for c in expr.children()]
        res = None
        if pred is not None:
            definition = self.instance.preds[pred].definition
            # Definitions are not recursive; a cycle is left folded.
            if definition is not None and pred not in stack:
                res = self._expand(definition.apply(children), stack + (pred,))
        if res is None:
            res = expr.decl()(*children) if children else expr
        if not stack:
            self.cache[key] = (expr, res)
        return res
