"""Shared instance builders for the chcsplit tests."""

from pathlib import Path

import pytest
import z3

from chcsplit.instance.model import Instance

INT = z3.IntSort()
FIXTURES = Path(__file__).parent / "fixtures"


def counter_instance(name: str = "counter") -> Instance:
    """
    P counts up from 0 to 10, Q copies P.

        #0  x = 0                  -> P(x)
        #1  P(x) /\\ x < 10 /\\ y = x + 1 -> P(y)
        #2  P(x)                   -> Q(x)
        #3  P(x) /\\ x < 0          -> false
        #4  Q(x) /\\ x > 10         -> false
    """
    x, y = z3.Ints("x y")
    inst = Instance(name)
    p = inst.add_predicate("P", [INT]).idx
    q = inst.add_predicate("Q", [INT]).idx
    inst.add_clause([x], [x == 0], [], (p, [x]))
    inst.add_clause([x, y], [x < 10, y == x + 1], [(p, [x])], (p, [y]))
    inst.add_clause([x], [], [(p, [x])], (q, [x]))
    inst.add_clause([x], [x < 0], [(p, [x])], None)
    inst.add_clause([x], [x > 10], [(q, [x])], None)
    return inst


@pytest.fixture
def counter():
    return counter_instance()


@pytest.fixture
def counter_file():
    return FIXTURES / "counter.smt2"


@pytest.fixture
def unsafe_file():
    return FIXTURES / "unsafe.smt2"
