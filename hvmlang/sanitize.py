"""Rule sanitization: unique renaming and linearisation of variables.

Sanitizing a rule renames every variable to a globally unique name and
makes every variable linear: variables used more than once are copied
with ``dup``, variables used once are bound with ``let`` and unused
variables are renamed to ``*``.

Example: ``(Foo a b) = (+ a a)`` becomes
``(Foo x0 *) = dup x0.0 x0.1 = x0; (+ x0.0 x0.1)``.
"""

from __future__ import annotations

from typing import Iterable

from .syntax import (
    App,
    Ctr,
    Dup,
    F60,
    Lam,
    Let,
    Op2,
    Rule,
    Sup,
    Term,
    U60,
    Var,
)

__all__ = ["SanitizeError", "global_name_kind", "sanitize_rule", "sanitize_rules"]


class SanitizeError(ValueError):
    """Raised when a rule cannot be sanitized."""


def global_name_kind(name: str) -> str | None:
    """Classify a global (``$``-prefixed) name.

    Returns ``"dp0"`` for names starting with ``$0``, ``"dp1"`` for names
    starting with ``$1``, ``"var"`` for any other ``$`` name, and ``None``
    for ordinary, scoped names.
    """
    if not name.startswith("$"):
        return None
    if name.startswith("$0"):
        return "dp0"
    if name.startswith("$1"):
        return "dp1"
    return "var"


def _is_global(name: str) -> bool:
    return global_name_kind(name) is not None


class _Sanitizer:
    def __init__(self) -> None:
        self.uses: dict[str, int] = {}
        self._count = 0

    def fresh(self) -> str:
        name = f"x{self._count}"
        self._count += 1
        return name

    def create_table(self, rule: Rule) -> dict[str, str]:
        lhs = rule.lhs
        if not isinstance(lhs, Ctr):
            raise SanitizeError("Invalid left-hand side")
        table: dict[str, str] = {}
        for arg in lhs.args:
            match arg:
                case Var(name):
                    table[name] = self.fresh()
                case Ctr(_, fields):
                    for field in fields:
                        if isinstance(field, Var):
                            table[field.name] = self.fresh()
                case U60() | F60():
                    pass
                case _:
                    raise SanitizeError("Invalid left-hand side")
        return table

    def rename_erased(self, name: str) -> str:
        if not _is_global(name) and self.uses.get(name, 0) <= 0:
            return "*"
        return name

    def term(self, term: Term, lhs: bool, tbl: dict[str, str]) -> Term:
        match term:
            case Var(name):
                return self._var(name, lhs, tbl)
            case Dup(nam0, nam1, expr, body):
                return self._dup(nam0, nam1, expr, body, lhs, tbl)
            case Sup(val0, val1):
                return Sup(self.term(val0, lhs, tbl), self.term(val1, lhs, tbl))
            case Let(name, expr, body):
                return self._let(name, expr, body, lhs, tbl)
            case Lam(name, body):
                return self._lam(name, body, lhs, tbl)
            case App(func, argm):
                return App(self.term(func, lhs, tbl), self.term(argm, lhs, tbl))
            case Ctr(name, args):
                return Ctr(name, tuple(self.term(arg, lhs, tbl) for arg in args))
            case Op2(oper, val0, val1):
                return Op2(oper, self.term(val0, lhs, tbl), self.term(val1, lhs, tbl))
            case U60() | F60():
                return term
        raise TypeError(f"not a term: {term!r}")

    def _var(self, name: str, lhs: bool, tbl: dict[str, str]) -> Term:
        if lhs:
            return Var(self.rename_erased(tbl.get(name, name)))
        if _is_global(name):
            if name in tbl:
                raise SanitizeError(
                    "Using a global variable more than once isn't supported yet. "
                    f"Use an explicit 'let' to clone it. {name}"
                )
            tbl[name] = ""
            return Var(name)
        if name in tbl:
            renamed = tbl[name]
            used = self.uses.get(renamed, 0) + 1
            self.uses[renamed] = used
            return Var(f"{renamed}.{used - 1}")
        raise SanitizeError(f"Unbound variable: `{name}`.")

    def _dup(
        self, nam0: str, nam1: str, expr: Term, body: Term, lhs: bool, tbl: dict[str, str]
    ) -> Term:
        kind0 = global_name_kind(nam0)
        kind1 = global_name_kind(nam1)
        is_global_0 = kind0 is not None
        is_global_1 = kind1 is not None
        if is_global_0 and kind0 != "dp0":
            raise SanitizeError(f"The name of the global dup var '{nam0}' must start with '$0'.")
        if is_global_1 and kind1 != "dp1":
            raise SanitizeError(f"The name of the global dup var '{nam1}' must start with '$1'.")
        if is_global_0 != is_global_1:
            raise SanitizeError(f"Both variables must be global: '{nam0}' and '{nam1}'.")
        if is_global_0 and nam0[2:] != nam1[2:]:
            raise SanitizeError(f"Global dup names must be identical: '{nam0}' and '{nam1}'.")
        new_nam0 = nam0 if is_global_0 else self.fresh()
        new_nam1 = nam1 if is_global_1 else self.fresh()
        new_expr = self.term(expr, lhs, tbl)
        got_nam0 = tbl.pop(nam0, None)
        got_nam1 = tbl.pop(nam1, None)
        if not is_global_0:
            tbl[nam0] = new_nam0
        if not is_global_1:
            tbl[nam1] = new_nam1
        new_body = self.term(body, lhs, tbl)
        if not is_global_0:
            tbl.pop(nam0, None)
        if got_nam0 is not None:
            tbl[nam0] = got_nam0
        if not is_global_1:
            tbl.pop(nam1, None)
        if got_nam1 is not None:
            tbl[nam1] = got_nam1
        suffix = "" if is_global_0 else ".0"
        return Dup(new_nam0 + suffix, new_nam1 + suffix, new_expr, new_body)

    def _let(self, name: str, expr: Term, body: Term, lhs: bool, tbl: dict[str, str]) -> Term:
        if _is_global(name):
            raise SanitizeError(f"Global variable '{name}' not allowed on let. Use dup instead.")
        new_name = self.fresh()
        new_expr = self.term(expr, lhs, tbl)
        got_name = tbl.pop(name, None)
        tbl[name] = new_name
        new_body = self.term(body, lhs, tbl)
        tbl.pop(name, None)
        if got_name is not None:
            tbl[name] = got_name
        return self.duplicate(new_name, new_expr, new_body)

    def _lam(self, name: str, body: Term, lhs: bool, tbl: dict[str, str]) -> Term:
        is_global = _is_global(name)
        new_name = name if is_global else self.fresh()
        got_name = tbl.pop(name, None)
        if not is_global:
            tbl[name] = new_name
        new_body = self.term(body, lhs, tbl)
        if not is_global:
            tbl.pop(name, None)
        if got_name is not None:
            tbl[name] = got_name
        new_body = self.duplicate(new_name, Var(new_name), new_body)
        return Lam(self.rename_erased(new_name), new_body)

    def duplicate(self, name: str, expr: Term, body: Term) -> Term:
        """Bind ``name``'s numbered copies in ``body`` from ``expr``."""
        amount = self.uses.get(name, 0)
        if amount < 1:
            return body
        if amount == 1:
            return Let(f"{name}.0", expr, body)
        duplicated_times = amount - 1
        aux_count = amount - 2
        names = [f"{name}.{i - aux_count}" for i in reversed(range(aux_count, duplicated_times * 2))]
        names.extend(f"c.{i}" for i in reversed(range(aux_count)))

        # Build the chain of dups from the innermost outwards.
        pairs = [(names.pop(), names.pop())]
        for _ in range(1, duplicated_times):
            pairs.append((names.pop(), names.pop()))
        result = body
        for step in reversed(range(1, duplicated_times)):
            nam0, nam1 = pairs[step]
            result = Dup(nam0, nam1, Var(f"c.{step - 1}"), result)
        nam0, nam1 = pairs[0]
        return Dup(nam0, nam1, expr, result)


def sanitize_rule(rule: Rule) -> Rule:
    """Return ``rule`` with unique, linear variable names.

    Raises :class:`SanitizeError` when the left-hand side is invalid or a
    variable is unbound or misused.
    """
    sanitizer = _Sanitizer()
    table = sanitizer.create_table(rule)
    rhs = sanitizer.term(rule.rhs, False, dict(table))
    lhs = sanitizer.term(rule.lhs, True, dict(table))
    for key in sorted(table):
        renamed = table[key]
        rhs = sanitizer.duplicate(renamed, Var(renamed), rhs)
    return Rule(lhs, rhs)


def sanitize_rules(rules: Iterable[Rule]) -> list[Rule]:
    """Sanitize every rule, reporting the offending rule on failure."""
    sanitized: list[Rule] = []
    for rule in rules:
        try:
            sanitized.append(sanitize_rule(rule))
        except SanitizeError as err:
            raise SanitizeError(f"{err}\nOn rule: `{rule}`.") from err
    return sanitized