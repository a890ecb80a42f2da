"""Rule books: sanitized rules grouped by function, with constructor metadata.

A rule book holds everything needed to run a file:

- ``rule_group``: sanitized rules grouped by function name
- ``name_to_id`` / ``id_to_name``: numeric ids of constructor names
- ``id_to_smap``: per-id strictness map, one flag per argument
- ``ctr_is_fun``: names of constructors that are defined by rules
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .flatten import flatten
from .sanitize import sanitize_rules
from .syntax import App, Ctr, Dup, F60, File, Lam, Let, Op2, Rule, Sup, Term, U60

__all__ = ["RuleBook", "RuleGroup", "new_rulebook", "add_group", "group_rules", "gen_rulebook"]


@dataclass
class RuleGroup:
    """The rules of one function, together with its arity."""

    arity: int
    rules: list[Rule] = field(default_factory=list)


@dataclass
class RuleBook:
    """Rules grouped by function, plus id and strictness tables."""

    rule_group: dict[str, RuleGroup] = field(default_factory=dict)
    name_count: int = 0
    name_to_id: dict[str, int] = field(default_factory=dict)
    id_to_smap: dict[int, list[bool]] = field(default_factory=dict)
    id_to_name: dict[int, str] = field(default_factory=dict)
    ctr_is_fun: dict[str, bool] = field(default_factory=dict)

    def register_name(self, name: str) -> int:
        """Return the id of ``name``, assigning the next free one if it is new."""
        ident = self.name_to_id.get(name)
        if ident is None:
            ident = self.name_count
            self.name_to_id[name] = ident
            self.id_to_name[ident] = name
            self.name_count += 1
        return ident


def new_rulebook() -> RuleBook:
    """Create an empty rule book."""
    return RuleBook()


def _register(book: RuleBook, term: Term, lhs_top: bool) -> None:
    match term:
        case Dup(_, _, expr, body) | Let(_, expr, body):
            _register(book, expr, False)
            _register(book, body, False)
        case Sup(val0, val1) | Op2(_, val0, val1):
            _register(book, val0, False)
            _register(book, val1, False)
        case Lam(_, body):
            _register(book, body, False)
        case App(func, argm):
            _register(book, func, False)
            _register(book, argm, False)
        case Ctr(name, args):
            ident = book.register_name(name)
            smap = book.id_to_smap.get(ident)
            if smap is None:
                smap = [False] * len(args)
                book.id_to_smap[ident] = smap
            elif len(smap) != len(args):
                raise ValueError(f"inconsistent arity on: '{term}'")
            # Pattern-matched arguments are strict.
            if lhs_top:
                for index, arg in enumerate(args):
                    if isinstance(arg, (Ctr, U60, F60)):
                        smap[index] = True
            for arg in args:
                _register(book, arg, False)


def add_group(book: RuleBook, name: str, group: RuleGroup) -> None:
    """Insert ``group`` under ``name`` and register the names its rules use."""
    book.rule_group[name] = RuleGroup(group.arity, list(group.rules))
    for rule in group.rules:
        _register(book, rule.lhs, True)
        _register(book, rule.rhs, False)
        if isinstance(rule.lhs, Ctr):
            book.ctr_is_fun[rule.lhs.name] = True


def group_rules(rules: Iterable[Rule]) -> dict[str, RuleGroup]:
    """Group rules by the name on their left-hand side, in order of first appearance.

    The arity of a group is taken from its first rule; rules whose
    left-hand side is not a constructor are ignored.
    """
    groups: dict[str, RuleGroup] = {}
    for rule in rules:
        lhs = rule.lhs
        if not isinstance(lhs, Ctr):
            continue
        group = groups.get(lhs.name)
        if group is None:
            groups[lhs.name] = RuleGroup(len(lhs.args), [rule])
        else:
            group.rules.append(rule)
    return groups


def gen_rulebook(file: File) -> RuleBook:
    """Flatten, sanitize and group a file's rules into a rule book.

    Strictness declarations of the file (``!`` before an argument) are
    merged into the book's strictness maps.
    """
    book = new_rulebook()
    for name, group in group_rules(sanitize_rules(flatten(file.rules))).items():
        add_group(book, name, group)

    for rule_name, rule_smap in file.smaps:
        ident = book.name_to_id.get(rule_name)
        if ident is None:
            raise ValueError(f"strictness map for unknown name: '{rule_name}'")
        smap = book.id_to_smap.setdefault(ident, [False] * len(rule_smap))
        if len(rule_smap) < len(smap):
            raise ValueError(f"inconsistent arity on strictness map of: '{rule_name}'")
        for index, strict in enumerate(rule_smap[: len(smap)]):
            if strict:
                smap[index] = True

    return book