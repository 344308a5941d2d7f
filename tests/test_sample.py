"""Tests for samples: ordering, value conversion and signature rewriting."""

from fractions import Fraction

import pytest
import z3
from hypothesis import given, strategies as st

from chcsplit.data.sample import (
    UNKNOWN,
    Sample,
    samples_from_model,
    sorted_samples,
    value_of,
    value_to_z3,
)
from chcsplit.instance.model import Instance

INT = z3.IntSort()
BOOL = z3.BoolSort()


def test_samples_order_by_predicate_then_arguments():
    samples = [Sample(1, (0,)), Sample(0, (5,)), Sample(0, (-1,)), Sample(0, (5, 1))]
    assert sorted_samples(samples) == [
        Sample(0, (-1,)),
        Sample(0, (5,)),
        Sample(0, (5, 1)),
        Sample(1, (0,)),
    ]


def test_unknown_sorts_first_and_is_a_singleton():
    assert Sample(0, (UNKNOWN,)) < Sample(0, (False,)) < Sample(0, (0,))
    assert type(UNKNOWN)() is UNKNOWN
    assert repr(UNKNOWN) == "_"


def test_samples_are_hashable_and_args_normalised():
    a = Sample(2, [1, 2])
    b = Sample(2, (1, 2))
    assert a == b
    assert len({a, b}) == 1
    assert isinstance(a.args, tuple)
    assert str(a) == "(#2 1 2)"


def test_value_conversion_round_trip():
    assert value_of(z3.IntVal(-3)) == -3
    assert value_of(z3.BoolVal(True)) is True
    assert value_of(z3.RealVal("1/3")) == Fraction(1, 3)
    assert value_of(z3.BitVecVal(5, 8)) == 5
    assert value_to_z3(4, INT).eq(z3.IntVal(4))
    assert value_to_z3(Fraction(1, 2), z3.RealSort()).eq(z3.RealVal("1/2"))
    with pytest.raises(ValueError):
        value_to_z3(UNKNOWN, INT)


def test_samples_from_model():
    x, y = z3.Ints("x y")
    s = z3.Solver()
    s.add(x == 3, y == x + 1)
    assert s.check() == z3.sat
    samples = samples_from_model(0, [(x, y), (y, x)], s.model())
    assert samples == [Sample(0, (3, 4)), Sample(0, (4, 3))]


def test_reduced_predicate_rejects_bad_maps():
    inst = Instance()
    with pytest.raises(ValueError):
        inst.add_predicate("P", [INT], original_sorts=[INT, INT])
    with pytest.raises(ValueError):
        inst.add_predicate("Q", [INT], original_sorts=[BOOL, INT], original_sig_map=[0])


def test_rewrite_to_original_signature():
    inst = Instance()
    pred = inst.add_predicate("P", [BOOL, INT], original_sorts=[INT, INT, BOOL], original_sig_map=[2, 0])
    sample = Sample(pred.idx, (True, 7))
    original = sample.to_original(pred)
    assert original == Sample(pred.idx, (7, UNKNOWN, True))
    assert original.has_unknowns()
    assert original.to_reduced(pred) == sample


@given(st.booleans(), st.integers(min_value=-100, max_value=100))
def test_signature_round_trip(flag, value):
    inst = Instance()
    pred = inst.add_predicate("P", [BOOL, INT], original_sorts=[INT, INT, BOOL], original_sig_map=[2, 0])
    sample = Sample(pred.idx, (flag, value))
    assert sample.to_original(pred).to_reduced(pred) == sample


def test_rewrite_checks_arity():
    inst = Instance()
    pred = inst.add_predicate("P", [INT])
    with pytest.raises(ValueError):
        Sample(pred.idx, (1, 2)).to_original(pred)
