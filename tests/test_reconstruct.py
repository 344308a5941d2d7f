"""
Tests for entry point reconstruction against an original instance.
"""

import pytest
import z3
from hypothesis import given, settings, strategies as st

from chcsplit.config import ReconstructionConfig
from chcsplit.data.sample import Sample
from chcsplit.errors import IllegalClause, ReconstructionError, UnreconstructableSample
from chcsplit.instance.model import Instance
from chcsplit.oracle import OraclePool, OracleSession
from chcsplit.unsat_core.entry_points import Entry
from chcsplit.unsat_core.reconstruct import ProofReconstructor, safe_predicates

INT = z3.IntSort()


def _fact_instance():
    """R(x) <- x = 5, and R(x) /\\ x > 5 -> false."""
    x = z3.Int("x")
    inst = Instance("fact")
    r = inst.add_predicate("R", [INT]).idx
    inst.add_clause([x], [x == 5], [], (r, [x]))
    inst.add_clause([x], [x > 5], [(r, [x])], None)
    return inst


def _chain_instance():
    """
    #0  x = 1             -> A(x)
    #1  A(x)              -> B(x)
    #2  A(x) /\\ y = x + 1 -> C(y)
    #3  B(x) /\\ y = x + 2 -> C(y)
    """
    x, y = z3.Ints("x y")
    inst = Instance("chain")
    a = inst.add_predicate("A", [INT]).idx
    b = inst.add_predicate("B", [INT]).idx
    c = inst.add_predicate("C", [INT]).idx
    inst.add_clause([x], [x == 1], [], (a, [x]))
    inst.add_clause([x], [], [(a, [x])], (b, [x]))
    inst.add_clause([x, y], [y == x + 1], [(a, [x])], (c, [y]))
    inst.add_clause([x, y], [y == x + 2], [(b, [x])], (c, [y]))
    return inst


def _working_chain():
    """Same predicates, A solved as x = 1 and B as A."""
    inst = Instance("chain/working")
    a = inst.add_predicate("A", [INT])
    b = inst.add_predicate("B", [INT])
    inst.add_predicate("C", [INT])
    (pa,) = a.params()
    (pb,) = b.params()
    inst.set_definition(a.idx, pa == 1)
    inst.set_definition(b.idx, a.decl(pb))
    return inst


def test_safe_predicates_fixpoint():
    inst = Instance()
    preds = {name: inst.add_predicate(name, [INT]) for name in "ABCDE"}
    (a,) = preds["A"].params()
    inst.set_definition(preds["A"].idx, a == 1)
    (b,) = preds["B"].params()
    inst.set_definition(preds["B"].idx, z3.Or(preds["A"].decl(b), b == 0))
    (c,) = preds["C"].params()
    inst.set_definition(preds["C"].idx, preds["D"].decl(c))
    (d,) = preds["D"].params()
    inst.set_definition(preds["D"].idx, preds["C"].decl(d))

    safe, pos = safe_predicates(inst)
    assert safe == {preds["A"].idx, preds["B"].idx}
    assert pos == {preds["A"].idx}


def test_fact_reconstruction_has_no_entry_points():
    inst = _fact_instance()
    session = OracleSession("test")
    res = ProofReconstructor(inst, inst, [Sample(0, (5,))], session).run()
    assert res == frozenset()


def test_sample_without_witness():
    inst = _fact_instance()
    with pytest.raises(UnreconstructableSample) as err:
        ProofReconstructor(inst, inst, [Sample(0, (6,))], OracleSession()).run()
    assert err.value.sample == Sample(0, (6,))
    assert "(R 6)" in str(err.value)


def test_negative_clause_cannot_witness():
    inst = _fact_instance()
    rec = ProofReconstructor(inst, inst, [], OracleSession())
    with pytest.raises(IllegalClause) as err:
        rec.witness(0, Sample(0, (5,)), 1)
    assert err.value.clause == 1


def test_witness_checks_the_conclusion():
    inst = _chain_instance()
    rec = ProofReconstructor(inst, _working_chain(), [], OracleSession())
    with pytest.raises(ReconstructionError):
        rec.witness(2, Sample(2, (2,)), 0)


def test_mismatched_instances_are_rejected():
    other = Instance()
    other.add_predicate("S", [INT])
    with pytest.raises(ReconstructionError):
        ProofReconstructor(_fact_instance(), other, [], OracleSession())


def test_usable_clause_yields_positive_lhs_samples():
    original = _chain_instance()
    working = _working_chain()
    rec = ProofReconstructor(original, working, [Sample(2, (2,))], OracleSession())
    assert rec.clauses_for(2) == ([], [2, 3])
    assert rec.run() == {Sample(0, (1,))}


def test_safe_non_positive_predicates_are_not_recorded():
    original = _chain_instance()
    working = _working_chain()
    # Only #3 (through B) can produce C(3).
    res = ProofReconstructor(original, working, [Sample(2, (3,))], OracleSession()).run()
    assert res == frozenset()


def test_unsafe_lhs_predicates_disable_a_clause():
    original = _chain_instance()
    working = Instance("chain/unsolved")
    for name in "ABC":
        working.add_predicate(name, [INT])
    rec = ProofReconstructor(original, working, [Sample(2, (2,))], OracleSession())
    assert rec.clauses_for(2) == ([], [])
    with pytest.raises(UnreconstructableSample):
        rec.run()


def test_session_is_reset_after_a_run():
    session = OracleSession()
    ProofReconstructor(_chain_instance(), _working_chain(), [Sample(2, (2,))], session).run()
    assert session.statistics()["checks"] >= 1
    # Definitions can be written again after the reset.
    session.write_definitions(_working_chain())


def test_entry_reconstruction_through_a_reduced_signature():
    x, y = z3.Ints("x y")
    original = Instance("reduced")
    original.add_predicate("R", [INT, INT])
    original.add_clause([x, y], [x == 3, y == 7], [], (0, [x, y]))

    working = Instance("reduced/working")
    working.add_predicate("R", [INT], original_sorts=[INT, INT], original_sig_map=[1])

    pool = OraclePool()
    config = ReconstructionConfig(timeout_ms=5000)
    entry = Entry([Sample(0, (7,))])
    assert entry.rewrite(working)[0].args[1] == 7
    assert entry.reconstruct(working, original, pool, config) == Entry()
    assert len(pool) == 1

    with pytest.raises(UnreconstructableSample):
        Entry([Sample(0, (8,))]).reconstruct(working, original, pool, config)
    assert len(pool) == 1


def test_sessions_go_back_to_the_callers_pool():
    inst = _fact_instance()
    pool = OraclePool()
    assert len(pool) == 0
    Entry([Sample(0, (5,))]).reconstruct(inst, inst, pool)
    (session,) = pool._free
    Entry([Sample(0, (5,))]).reconstruct(inst, inst, pool)
    assert pool._free == [session]


def test_unrepresentable_model_values_name_the_clause():
    """A witness through an irrational real cannot be recorded as a sample."""
    y = z3.Real("y")
    x = z3.Int("x")
    original = Instance("irrational")
    a = original.add_predicate("A", [z3.RealSort()]).idx
    r = original.add_predicate("R", [INT]).idx
    original.add_clause([y, x], [y * y == 2, y > 0, x == 1], [(a, [y])], (r, [x]))

    working = Instance("irrational/working")
    working.add_predicate("A", [z3.RealSort()])
    working.add_predicate("R", [INT])
    working.set_definition(a, z3.BoolVal(True))

    rec = ProofReconstructor(original, working, [Sample(r, (1,))], OracleSession())
    with pytest.raises(ReconstructionError) as err:
        rec.run()
    assert err.value.clause == 0
    assert err.value.sample == Sample(r, (1,))
    assert isinstance(err.value.__cause__, ValueError)


@settings(max_examples=60, deadline=None)
@given(
    st.lists(
        st.one_of(st.none(), st.frozensets(st.integers(min_value=0, max_value=4), max_size=3)),
        min_size=5,
        max_size=5,
    )
)
def test_safe_predicates_are_a_least_fixpoint(shapes):
    inst = Instance()
    preds = [inst.add_predicate(f"P{i}", [INT]) for i in range(5)]
    for pred, refs in zip(preds, shapes):
        if refs is None:
            continue
        (v,) = pred.params()
        inst.set_definition(pred.idx, z3.And(v >= 0, *[preds[r].decl(v) for r in sorted(refs)]))

    safe, pos = safe_predicates(inst)
    refs = {p.idx: inst.preds_of_definition(p.idx) for p in preds}

    # Justified and closed.
    for p in safe:
        assert refs[p] <= safe
    for p in preds:
        if p.definition is not None and p.idx not in safe:
            assert not refs[p.idx] <= safe
    assert pos == {p for p in safe if not refs[p]}

    # Least: safe predicates can be added one layer at a time from nothing.
    added = set()
    remaining = set(safe)
    while remaining:
        ready = {p for p in remaining if refs[p] <= added}
        assert ready
        added |= ready
        remaining -= ready
