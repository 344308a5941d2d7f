"""
Conjunctive candidate model accumulated across splits.

Each split yields a partial model (one fragment per predicate).  The
accumulator keeps, for every predicate not already defined in the top-level
instance, the list of distinct fragments seen so far; the candidate
definition of the predicate is their conjunction.

Insertion rule for a fragment ``f`` of predicate ``P``:

- ``f`` simplifies to true:  nothing to record.
- ``f`` simplifies to false: the entry collapses to ``[false]``.
- otherwise ``f`` is appended, unless an identical fragment or a false
  fragment is already present.

So an entry never holds a false fragment next to anything else.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

import z3

from .instance.model import Instance, PredicateHandle

logger = logging.getLogger(__name__)


def fragment_bool(fragment: z3.BoolRef) -> Optional[bool]:
    """``True``/``False`` if the fragment simplifies to a literal, else ``None``."""
    simplified = z3.simplify(fragment)
    if z3.is_true(simplified):
        return True
    if z3.is_false(simplified):
        return False
    return None


class CandidateAccumulator:
    """Best current conjunctive definition of each predicate."""

    def __init__(self, instance: Instance):
        # Top-level instance, only used to skip known predicates.
        self.instance = instance
        self._conjs: Dict[PredicateHandle, List[z3.BoolRef]] = {}

    def merge(self, partial_model: Mapping[PredicateHandle, z3.BoolRef]) -> None:
        for pred, fragment in partial_model.items():
            if self.instance.is_known(pred):
                continue
            self.add(pred, fragment)

    def add(self, pred: PredicateHandle, fragment: z3.BoolRef) -> None:
        conj = self._conjs.setdefault(pred, [])
        value = fragment_bool(fragment)
        if value is True:
            return
        if value is False:
            if conj:
                logger.debug(f"candidate for {self._name(pred)} collapsed to false")
            conj.clear()
        if not any(other.eq(fragment) or fragment_bool(other) is False for other in conj):
            conj.append(fragment)

    # ── queries ──────────────────────────────────────────────────────────

    def get(self, pred: PredicateHandle) -> List[z3.BoolRef]:
        return list(self._conjs.get(pred, ()))

    def items(self) -> Iterator[Tuple[PredicateHandle, List[z3.BoolRef]]]:
        for pred in sorted(self._conjs):
            yield pred, list(self._conjs[pred])

    def is_unsat_candidate(self, pred: PredicateHandle) -> bool:
        """The predicate is forced to reject everything seen so far."""
        conj = self._conjs.get(pred, ())
        return len(conj) == 1 and fragment_bool(conj[0]) is False

    def conjunction(self, pred: PredicateHandle) -> z3.BoolRef:
        conj = self._conjs.get(pred, ())
        if not conj:
            return z3.BoolVal(True)
        if len(conj) == 1:
            return conj[0]
        return z3.And(*conj)

    def definitions(self) -> Dict[PredicateHandle, z3.BoolRef]:
        return {pred: self.conjunction(pred) for pred in sorted(self._conjs)}

    def __contains__(self, pred: PredicateHandle) -> bool:
        return pred in self._conjs

    def __len__(self) -> int:
        return len(self._conjs)

    def to_string(self) -> str:
        lines = []
        for pred, conj in self.items():
            lines.append(f"{self._name(pred)}:")
            if not conj:
                lines.append("  true")
            for fragment in conj:
                lines.append(f"  {fragment}")
        return "\n".join(lines)

    def _name(self, pred: PredicateHandle) -> str:
        return self.instance.preds[pred].name
