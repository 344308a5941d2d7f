"""
Samples: ground instantiations of a predicate's arguments.

Samples are totally ordered (predicate index first, then argument values) so
that every set or map of samples can be iterated in a reproducible order.
Values are plain Python objects converted from z3 model values:

- ``bool`` for Bool,
- ``int`` for Int and bit-vectors,
- ``fractions.Fraction`` for Real,
- ``UNKNOWN`` for an argument position whose value is not known (used when a
  sample is rewritten from a reduced signature to the original one).
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Iterable, List, Sequence, Tuple

import z3


class _Unknown:
    """Placeholder for an argument absent from a reduced signature."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "_"

    def __reduce__(self):
        return (_Unknown, ())


UNKNOWN = _Unknown()


def value_key(value: Any) -> Tuple[int, Any]:
    """Type-ranked sort key: UNKNOWN < bool < numbers."""
    if value is UNKNOWN:
        return (0, 0)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, Fraction)):
        return (2, value)
    raise TypeError(f"unsupported sample value {value!r}")


def value_of(expr: z3.ExprRef) -> Any:
    """Convert a z3 model value to a sample value."""
    if z3.is_true(expr):
        return True
    if z3.is_false(expr):
        return False
    if z3.is_int_value(expr) or z3.is_bv_value(expr):
        return expr.as_long()
    if z3.is_rational_value(expr):
        return Fraction(expr.numerator_as_long(), expr.denominator_as_long())
    raise ValueError(f"cannot convert {expr} to a sample value")


def value_to_z3(value: Any, sort: z3.SortRef) -> z3.ExprRef:
    """Convert a sample value back to a z3 constant of the given sort."""
    if value is UNKNOWN:
        raise ValueError("cannot convert an unknown value to a z3 constant")
    if sort.kind() == z3.Z3_BOOL_SORT:
        return z3.BoolVal(bool(value), sort.ctx)
    if sort.kind() == z3.Z3_INT_SORT:
        return z3.IntVal(int(value), sort.ctx)
    if sort.kind() == z3.Z3_REAL_SORT:
        return z3.RealVal(str(Fraction(value)), sort.ctx)
    if sort.kind() == z3.Z3_BV_SORT:
        return z3.BitVecVal(int(value), sort.size(), sort.ctx)
    raise ValueError(f"unsupported sort {sort} for sample values")


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Sample:
    """A predicate index and a tuple of argument values."""
    pred: int
    args: Tuple[Any, ...]

    def __post_init__(self):
        if not isinstance(self.args, tuple):
            object.__setattr__(self, "args", tuple(self.args))

    def sort_key(self) -> Tuple[int, Tuple[Tuple[int, Any], ...]]:
        return (self.pred, tuple(value_key(v) for v in self.args))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Sample):
            return NotImplemented
        return self.sort_key() == other.sort_key()

    def __lt__(self, other: "Sample") -> bool:
        if not isinstance(other, Sample):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __hash__(self) -> int:
        return hash(self.sort_key())

    def __str__(self) -> str:
        return self._render(f"#{self.pred}")

    def to_string(self, instance) -> str:
        return self._render(instance.preds[self.pred].name)

    def _render(self, name: str) -> str:
        if not self.args:
            return f"({name})"
        return "({} {})".format(name, " ".join(str(v) for v in self.args))

    def has_unknowns(self) -> bool:
        return any(v is UNKNOWN for v in self.args)

    def to_original(self, predicate) -> "Sample":
        """
        Rewrite this sample from ``predicate``'s (possibly reduced) signature
        to its original one.

        Original positions absent from the reduced signature get ``UNKNOWN``.
        """
        if len(self.args) != len(predicate.sorts):
            raise ValueError(
                f"sample {self} has {len(self.args)} argument(s), "
                f"predicate {predicate.name} expects {len(predicate.sorts)}"
            )
        nu_args: List[Any] = [UNKNOWN] * len(predicate.original_sorts)
        for var, val in enumerate(self.args):
            nu_args[predicate.original_sig_map[var]] = val
        return Sample(self.pred, tuple(nu_args))

    def to_reduced(self, predicate) -> "Sample":
        """Project an original-signature sample onto ``predicate``'s current signature."""
        if len(self.args) != len(predicate.original_sorts):
            raise ValueError(
                f"sample {self} has {len(self.args)} argument(s), "
                f"predicate {predicate.name} originally has {len(predicate.original_sorts)}"
            )
        return Sample(self.pred, tuple(self.args[old] for old in predicate.original_sig_map))


def sorted_samples(samples: Iterable[Sample]) -> List[Sample]:
    return sorted(samples)


def samples_from_model(
    pred: int, argss: Sequence[Sequence[z3.ExprRef]], model: z3.ModelRef
) -> List[Sample]:
    """Evaluate each argument tuple under ``model`` into a ground sample."""
    samples = []
    for args in argss:
        values = tuple(value_of(model.eval(arg, model_completion=True)) for arg in args)
        samples.append(Sample(pred, values))
    return samples
