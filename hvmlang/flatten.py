"""Flattening of rules with nested patterns.

A rule whose left-hand side matches a constructor nested inside another
constructor is split. The outer match stays in the defining function, and
the inner matches move into a new auxiliary function named
``<function>.<n>``. Every other rule of the group that can match at the
same time is rewritten to call through the auxiliary function.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable, Iterator

from .syntax import App, Ctr, Dup, F60, Lam, Let, Op2, Rule, Sup, Term, U60, Var

__all__ = ["subst", "flatten"]


def subst(term: Term, name: str, value: Term) -> Term:
    """Return ``term`` with free occurrences of variable ``name`` replaced by ``value``."""
    match term:
        case Var(var_name):
            return value if var_name == name else term
        case Dup(nam0, nam1, expr, body):
            new_body = body if name in (nam0, nam1) else subst(body, name, value)
            return Dup(nam0, nam1, subst(expr, name, value), new_body)
        case Sup(val0, val1):
            return Sup(subst(val0, name, value), subst(val1, name, value))
        case Let(let_name, expr, body):
            new_body = body if let_name == name else subst(body, name, value)
            return Let(let_name, subst(expr, name, value), new_body)
        case Lam(lam_name, body):
            return term if lam_name == name else Lam(lam_name, subst(body, name, value))
        case App(func, argm):
            return App(subst(func, name, value), subst(argm, name, value))
        case Ctr(ctr_name, args):
            return Ctr(ctr_name, tuple(subst(arg, name, value) for arg in args))
        case U60() | F60():
            return term
        case Op2(oper, val0, val1):
            return Op2(oper, subst(val0, name, value), subst(val1, name, value))
    raise TypeError(f"not a term: {term!r}")


def _is_matchable(term: Term) -> bool:
    return isinstance(term, (Ctr, U60, F60))


def _must_split(lhs: Term) -> bool:
    """True if some argument of ``lhs`` is a constructor with a matchable field."""
    if not isinstance(lhs, Ctr):
        return False
    return any(
        isinstance(arg, Ctr) and any(_is_matchable(field) for field in arg.args)
        for arg in lhs.args
    )


def _matches_together(a: Rule, b: Rule) -> tuple[bool, bool]:
    """Return (whether ``b`` can match whenever ``a`` does, whether both have the same shape)."""
    same_shape = True
    if isinstance(a.lhs, Ctr) and isinstance(b.lhs, Ctr):
        for a_arg, b_arg in zip(a.lhs.args, b.lhs.args):
            match a_arg:
                case Ctr(a_name, a_fields):
                    match b_arg:
                        case Ctr(b_name, b_fields):
                            if a_name != b_name or len(a_fields) != len(b_fields):
                                return False, False
                        case U60() | F60():
                            return False, False
                        case Var():
                            same_shape = False
                case U60(a_numb):
                    match b_arg:
                        case U60(b_numb):
                            if a_numb != b_numb:
                                return False, False
                        case Ctr():
                            return False, False
                        case Var():
                            same_shape = False
                case F60(a_value):
                    match b_arg:
                        case F60(b_value):
                            if a_value != b_value:
                                return False, False
                        case Ctr():
                            return False, False
                        case Var():
                            same_shape = False
    return True, same_shape


class _Flattener:
    def __init__(self) -> None:
        self._counter: Iterator[int] = itertools.count()

    def fresh(self) -> int:
        return next(self._counter)

    def fresh_var(self) -> Var:
        return Var(f".{self.fresh()}")

    def split_group(self, rules: list[Rule]) -> list[Rule]:
        skip: set[int] = set()
        new_rules: list[Rule] = []
        for i, rule in enumerate(rules):
            if i in skip:
                continue
            if not _must_split(rule.lhs):
                new_rules.append(rule)
                continue
            new_rules.extend(self.split_group(self._split_rule(i, rule, rules, skip)))
        return new_rules

    def _split_rule(self, i: int, rule: Rule, rules: list[Rule], skip: set[int]) -> list[Rule]:
        lhs = rule.lhs
        if not isinstance(lhs, Ctr):
            raise ValueError("Invalid left-hand side.")
        aux_name = f"{lhs.name}.{self.fresh()}"
        new_lhs_args: list[Term] = []
        new_rhs_args: list[Term] = []
        for arg in lhs.args:
            match arg:
                case Ctr(arg_name, fields):
                    new_fields: list[Term] = []
                    for field in fields:
                        match field:
                            case Ctr() | U60() | F60():
                                var = self.fresh_var()
                                new_fields.append(var)
                                new_rhs_args.append(var)
                            case Var():
                                new_fields.append(field)
                                new_rhs_args.append(field)
                            case _:
                                raise ValueError(f"Invalid pattern field: `{field}`.")
                    new_lhs_args.append(Ctr(arg_name, new_fields))
                case Var():
                    new_lhs_args.append(arg)
                    new_rhs_args.append(arg)

        new_group = [Rule(Ctr(lhs.name, new_lhs_args), Ctr(aux_name, new_rhs_args))]
        for j in range(i, len(rules)):
            other = rules[j]
            compatible, same_shape = _matches_together(rule, other)
            if not compatible or not isinstance(other.lhs, Ctr):
                continue
            if same_shape:
                skip.add(j)
            new_group.append(self._redirect(rule.lhs, other, aux_name))
        return new_group

    def _redirect(self, pattern: Ctr, other: Rule, aux_name: str) -> Rule:
        """Rewrite ``other`` as a rule of the auxiliary function."""
        assert isinstance(other.lhs, Ctr)
        args: list[Term] = []
        rhs = other.rhs
        for rule_arg, other_arg in zip(pattern.args, other.lhs.args):
            match rule_arg:
                case Ctr(rule_arg_name, rule_fields):
                    match other_arg:
                        case Ctr(_, other_fields):
                            args.extend(other_fields)
                        case Var(other_name):
                            fresh_fields = [self.fresh_var() for _ in rule_fields]
                            args.extend(fresh_fields)
                            rhs = subst(rhs, other_name, Ctr(rule_arg_name, fresh_fields))
                        case _:
                            raise ValueError("Internal error: incompatible patterns.")
                case Var():
                    args.append(other_arg)
                case U60() | F60():
                    if type(other_arg) is type(rule_arg):
                        if other_arg != rule_arg:
                            raise ValueError("Internal error: incompatible patterns.")
                        args.append(other_arg)
                    elif isinstance(other_arg, Var):
                        rhs = subst(rhs, other_arg.name, rule_arg)
                    else:
                        raise ValueError("Internal error: incompatible patterns.")
                case _:
                    raise ValueError("Internal error: incompatible patterns.")
        return Rule(Ctr(aux_name, args), rhs)


def flatten(rules: Iterable[Rule]) -> list[Rule]:
    """Split rules with nested patterns into rules over auxiliary functions.

    Rules are grouped by function name, in order of first appearance;
    rules whose left-hand side is not a constructor are dropped.
    """
    groups: dict[str, list[Rule]] = {}
    for rule in rules:
        if isinstance(rule.lhs, Ctr):
            groups.setdefault(rule.lhs.name, []).append(rule)
    flattener = _Flattener()
    result: list[Rule] = []
    for group in groups.values():
        result.extend(flattener.split_group(group))
    return result