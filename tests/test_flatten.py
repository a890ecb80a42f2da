from collections import Counter

import pytest

from hvmlang.flatten import flatten, subst
from hvmlang.sanitize import sanitize_rules
from hvmlang.syntax import Dup, Let, U60, Var, read_file, read_term


def _rules(code):
    return read_file(code).rules


def test_subst_replaces_free_variable():
    term = read_term("(Pair x y)")
    assert subst(term, "x", U60(5)) == read_term("(Pair 5 y)")


def test_subst_stops_at_lambda_binder():
    term = read_term("λx (Pair x y)")
    assert subst(term, "x", U60(5)) == term


def test_subst_let_replaces_expr_but_not_shadowed_body():
    term = read_term("let x = x; x")
    assert subst(term, "x", U60(5)) == Let("x", U60(5), Var("x"))


def test_subst_dup_shadows_body():
    term = read_term("dup a b = x; (Pair a x)")
    result = subst(term, "a", U60(7))
    assert result == term
    replaced = subst(term, "x", U60(7))
    assert replaced == Dup("a", "b", U60(7), read_term("(Pair a 7)"))


def test_subst_through_app_op2_and_sup():
    term = read_term("(f {x (+ x 1)})")
    assert subst(term, "x", U60(2)) == read_term("(f {2 (+ 2 1)})")


def test_flatten_leaves_flat_rules_unchanged():
    rules = _rules(
        """
        (Double (Zero)) = (Zero)
        (Double (Succ x)) = (Succ (Succ (Double x)))
        """
    )
    assert flatten(rules) == rules


def test_flatten_worked_example():
    rules = _rules(
        """
        (Foo (Succ (Succ x))) = x
        (Foo x) = 0
        """
    )
    assert [str(rule) for rule in flatten(rules)] == [
        "(Foo (Succ .1)) = (Foo.0 .1)",
        "(Foo.0 (Succ x)) = x",
        "(Foo.0 .2) = 0",
        "(Foo x) = 0",
    ]


def test_flatten_substitutes_default_variable_in_body():
    rules = _rules(
        """
        (Foo (Succ (Succ x))) = x
        (Foo y) = (Bar y)
        """
    )
    flat = flatten(rules)
    aux_rhs = [str(rule.rhs) for rule in flat if rule.lhs.name == "Foo.0"]
    assert "(Bar (Succ .2))" in aux_rhs


def test_flatten_is_idempotent():
    rules = _rules(
        """
        (Foo (Succ (Succ x))) = x
        (Foo (Succ (Zero))) = 1
        (Foo y) = 0
        (Bar (Pair (Z) b) c) = c
        (Bar a c) = a
        """
    )
    flat = flatten(rules)
    again = flatten(flat)
    assert Counter(map(str, again)) == Counter(map(str, flat))


def test_flatten_nested_numbers_produce_sanitizable_rules():
    rules = _rules(
        """
        (Foo (Succ 0)) = 1
        (Foo x) = 2
        """
    )
    flat = flatten(rules)
    assert {rule.lhs.name for rule in flat} == {"Foo", "Foo.0"}
    assert len(sanitize_rules(flat)) == len(flat)
    assert Counter(map(str, flatten(flat))) == Counter(map(str, flat))


def test_flatten_keeps_group_order_for_independent_groups():
    rules = _rules(
        """
        (A (X)) = 1
        (B (Y)) = 2
        (A (Z)) = 3
        """
    )
    flat = flatten(rules)
    assert flat == [rules[0], rules[2], rules[1]]


def test_flatten_rejects_non_pattern_field():
    rules = _rules("(Foo (Pair (Z) @x x)) = 0")
    with pytest.raises(ValueError):
        flatten(rules)


def test_flatten_rejects_number_kind_mismatch():
    rules = _rules(
        """
        (Foo 1 (S (Z))) = 0
        (Foo 1.5 (S k)) = 1
        """
    )
    with pytest.raises(ValueError):
        flatten(rules)