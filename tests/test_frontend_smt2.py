"""Tests for the SMT-LIB2 HORN loader."""

import pytest
import z3

from chcsplit.frontend.smt2 import HornFormatError, load_horn_file, load_horn_string


def test_load_counter(counter_file):
    inst = load_horn_file(counter_file)
    assert inst.name == "counter"
    assert [p.name for p in inst.preds] == ["P", "Q"]
    assert all(p.sorts == (z3.IntSort(),) for p in inst.preds)
    assert len(inst.clauses) == 5
    assert inst.neg_clauses() == [3, 4]

    fact = inst.clauses[0]
    assert fact.is_positive()
    assert len(fact.vars) == 1
    assert fact.rhs[0] == 0

    step = inst.clauses[1]
    assert len(step.vars) == 2
    assert len(step.lhs_terms) == 2
    assert [pred for pred, _ in step.lhs_apps()] == [0]

    # (not (and (Q x) (> x 10)))
    last = inst.clauses[4]
    assert [pred for pred, _ in last.lhs_apps()] == [1]
    assert len(last.lhs_terms) == 1


def test_quantifier_free_fact():
    inst = load_horn_string(
        "(declare-fun P (Int) Bool)\n"
        "(assert (P 0))\n"
    )
    (clause,) = inst.clauses
    assert clause.vars == ()
    assert clause.rhs[0] == 0
    assert clause.rhs[1][0].eq(z3.IntVal(0))


def test_nullary_predicates():
    inst = load_horn_string(
        "(declare-fun Init () Bool)\n"
        "(assert Init)\n"
        "(assert (=> Init false))\n"
    )
    assert inst.preds[0].arity == 0
    assert inst.clauses[0].rhs == (0, ())
    assert inst.neg_clauses() == [1]


def test_non_predicate_head_moves_to_the_body():
    inst = load_horn_string(
        "(declare-fun P (Int) Bool)\n"
        "(assert (forall ((x Int)) (=> (P x) (>= x 0))))\n"
    )
    (clause,) = inst.clauses
    assert clause.is_negative()
    (term,) = clause.lhs_terms
    assert z3.is_not(term)


def test_bound_boolean_variables_are_not_predicates():
    inst = load_horn_string(
        "(declare-fun P (Bool) Bool)\n"
        "(assert (forall ((b Bool)) (=> b (P b))))\n"
    )
    assert [p.name for p in inst.preds] == ["P"]
    assert len(inst.clauses[0].lhs_terms) == 1


@pytest.mark.parametrize(
    "text",
    [
        "(declare-fun P (Int) Bool)\n"
        "(assert (forall ((x Int)) (=> (or (P x) (> x 0)) false)))\n",
        "(declare-fun P (Int) Bool)\n"
        "(assert (exists ((x Int)) (P x)))\n",
        "(assert (forall ((x Int)) (=> (> x 0) (exists ((y Int)) (> y x)))))\n",
        "(assert (P 0))\n",
    ],
)
def test_malformed_input(text):
    with pytest.raises(HornFormatError):
        load_horn_string(text)


def test_missing_file(tmp_path):
    with pytest.raises(OSError):
        load_horn_file(tmp_path / "nope.smt2")
