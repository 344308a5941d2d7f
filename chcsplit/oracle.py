"""
Scoped z3 oracle sessions.

A session wraps one ``z3.Solver`` and adds what proof reconstruction needs
on top of plain assertions:

- variable declaration bookkeeping,
- background predicate definitions, written once per session, against
  which predicate applications are resolved,
- push/pop scoping and model extraction.

Sessions are handed out by an ``OraclePool`` and reset before they go back
to it.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Dict, Iterator, List, Optional, Sequence

import z3

from .errors import OracleError
from .instance.model import Instance, PredicateHandle

logger = logging.getLogger(__name__)


class OracleSession:
    """Stateful solver session."""

    def __init__(self, name: str = "oracle", timeout_ms: Optional[int] = None):
        self.name = name
        self.timeout_ms = timeout_ms
        self.solver = z3.Solver()
        if timeout_ms is not None:
            self.solver.set("timeout", int(timeout_ms))
        self._declared: List[Dict[int, z3.ExprRef]] = [{}]
        self._definitions: Optional[Instance] = None
        self._stats = {"checks": 0, "sat": 0}

    # ── declarations and definitions ─────────────────────────────────────

    def declare(self, variables: Sequence[z3.ExprRef]) -> None:
        for var in variables:
            if not z3.is_const(var):
                raise OracleError(f"[{self.name}] cannot declare non-constant {var}")
            self._declared[-1][var.get_id()] = var

    def is_declared(self, var: z3.ExprRef) -> bool:
        return any(var.get_id() in scope for scope in self._declared)

    def write_definitions(self, instance: Instance) -> None:
        """
        Use the predicate definitions of ``instance`` as background axioms.

        Applications of defined predicates asserted afterwards behave as the
        defined relation instead of an uninterpreted one.
        """
        if self._definitions is not None:
            raise OracleError(f"[{self.name}] definitions already written")
        self._definitions = instance
        defined = [p.name for p in instance.preds if p.definition is not None]
        logger.debug(f"[{self.name}] {len(defined)} background definition(s): {', '.join(defined)}")

    # ── assertions ───────────────────────────────────────────────────────

    def assert_term(self, term: z3.BoolRef) -> None:
        self.solver.add(term)

    def assert_pred_app(
        self, pred: PredicateHandle, args: Sequence[z3.ExprRef], original: bool = False
    ) -> None:
        """
        Assert ``pred(args)`` against the background definitions.

        With ``original``, ``args`` follow the predicate's original signature
        and are projected on its current one first.
        """
        if self._definitions is None:
            raise OracleError(f"[{self.name}] no predicate definitions written")
        predicate = self._definitions.preds[pred]
        if original:
            if len(args) != len(predicate.original_sorts):
                raise OracleError(
                    f"[{self.name}] {predicate.name} expects {len(predicate.original_sorts)} "
                    f"original argument(s), got {len(args)}"
                )
            args = [args[old] for old in predicate.original_sig_map]
        self.solver.add(self._definitions.inline(predicate.decl(*args)))

    # ── scoping and checks ───────────────────────────────────────────────

    def push(self) -> None:
        self.solver.push()
        self._declared.append({})

    def pop(self) -> None:
        if len(self._declared) == 1:
            raise OracleError(f"[{self.name}] pop without matching push")
        self.solver.pop()
        self._declared.pop()

    @contextlib.contextmanager
    def scope(self) -> Iterator["OracleSession"]:
        self.push()
        try:
            yield self
        finally:
            self.pop()

    def check_sat(self) -> bool:
        self._stats["checks"] += 1
        res = self.solver.check()
        if res == z3.unknown:
            raise OracleError(f"[{self.name}] solver returned unknown: {self.solver.reason_unknown()}")
        if res == z3.sat:
            self._stats["sat"] += 1
        return res == z3.sat

    def get_model(self) -> z3.ModelRef:
        try:
            return self.solver.model()
        except z3.Z3Exception as e:
            raise OracleError(f"[{self.name}] no model available: {e}") from e

    def reset(self) -> None:
        self.solver.reset()
        if self.timeout_ms is not None:
            self.solver.set("timeout", int(self.timeout_ms))
        self._declared = [{}]
        self._definitions = None

    def statistics(self) -> Dict[str, int]:
        return dict(self._stats)


class OraclePool:
    """Reuses sessions; each one is reset before it is put back."""

    def __init__(self, timeout_ms: Optional[int] = None):
        self.timeout_ms = timeout_ms
        self._free: List[OracleSession] = []

    def spawn(self, name: str) -> OracleSession:
        if self._free:
            session = self._free.pop()
            session.name = name
            return session
        return OracleSession(name, self.timeout_ms)

    def give_back(self, session: OracleSession) -> None:
        session.reset()
        self._free.append(session)

    @contextlib.contextmanager
    def session(self, name: str) -> Iterator[OracleSession]:
        session = self.spawn(name)
        try:
            yield session
        finally:
            self.give_back(session)

    def __len__(self) -> int:
        return len(self._free)
