import pytest

from core.state_machine import CounterStateMachine
from models import I64_MAX, I64_MIN, Add, Reset, Subtract


def test_add_subtract_reset():
    sm = CounterStateMachine()
    assert sm.apply(Add(1)).value == 1
    assert sm.apply(Subtract(3)).value == -2
    assert sm.apply(Reset()).value == 0


def test_fold_matches_arrival_order():
    transitions = [Add(5), Subtract(2), Add(-7), Reset(), Add(10), Subtract(-4)]
    sm = CounterStateMachine()
    for t in transitions:
        sm.apply(t)

    expected = 0
    for t in transitions:
        if isinstance(t, Add):
            expected += t.amount
        elif isinstance(t, Subtract):
            expected -= t.amount
        else:
            expected = 0
    assert sm.state.value == expected == 14


def test_revision_counts_applied_transitions():
    sm = CounterStateMachine()
    assert sm.state.revision == 0
    sm.apply(Add(1))
    sm.apply(Reset())
    assert sm.state.revision == 2


def test_add_wraps_on_overflow():
    sm = CounterStateMachine(I64_MAX)
    assert sm.apply(Add(1)).value == I64_MIN


def test_subtract_wraps_on_underflow():
    sm = CounterStateMachine(I64_MIN)
    assert sm.apply(Subtract(1)).value == I64_MAX


def test_initial_value():
    assert CounterStateMachine(42).state.value == 42


def test_unknown_transition_rejected():
    sm = CounterStateMachine()
    with pytest.raises(TypeError):
        sm.apply("Multiply")
    assert sm.state.value == 0
    assert sm.state.revision == 0
