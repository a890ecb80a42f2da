"""Term syntax: data types, pretty printing and the parser."""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from enum import Enum
from functools import reduce

__all__ = [
    "ParseError",
    "Oper",
    "Term",
    "Var",
    "Dup",
    "Sup",
    "Let",
    "Lam",
    "App",
    "Ctr",
    "U60",
    "F60",
    "Op2",
    "Rule",
    "File",
    "read_term",
    "read_rule",
    "read_file",
]

U60_MASK = (1 << 60) - 1
_U64_LIMIT = 1 << 64

_NAME_CHARS = frozenset(string.ascii_letters + string.digits + "_.$")
_OP_CHARS = frozenset("+-*/%&|^<>=!")
_VAR_START = frozenset(string.ascii_lowercase + "_$")


class ParseError(ValueError):
    """Raised when source text cannot be parsed."""

    def __init__(self, expected: str, code: str, index: int) -> None:
        line = code.count("\n", 0, index) + 1
        column = index - (code.rfind("\n", 0, index) + 1) + 1
        super().__init__(f"expected {expected} at line {line}, column {column}")
        self.expected = expected
        self.index = index


class Oper(Enum):
    """Binary numeric operators, valued by their source symbol."""

    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    AND = "&"
    OR = "|"
    XOR = "^"
    SHL = "<<"
    SHR = ">>"
    LTE = "<="
    LTN = "<"
    EQL = "=="
    GTE = ">="
    GTN = ">"
    NEQ = "!="

    @classmethod
    def from_symbol(cls, symbol: str) -> "Oper":
        """Return the operator written as ``symbol``."""
        try:
            return cls(symbol)
        except ValueError:
            raise ValueError(f"unknown operator: {symbol!r}") from None

    def __str__(self) -> str:
        return self.value


# The order in which operator symbols are tried while parsing.
_OPER_PARSE_ORDER = (
    Oper.ADD, Oper.SUB, Oper.MUL, Oper.DIV,
    Oper.MOD, Oper.AND, Oper.OR, Oper.XOR,
    Oper.SHL, Oper.SHR, Oper.LTE, Oper.LTN,
    Oper.EQL, Oper.GTE, Oper.GTN, Oper.NEQ,
)


class Term:
    """Base class of all terms."""

    __slots__ = ()

    def __str__(self) -> str:
        return _show(self)


@dataclass(frozen=True)
class Var(Term):
    name: str


@dataclass(frozen=True)
class Dup(Term):
    nam0: str
    nam1: str
    expr: Term
    body: Term


@dataclass(frozen=True)
class Sup(Term):
    val0: Term
    val1: Term


@dataclass(frozen=True)
class Let(Term):
    name: str
    expr: Term
    body: Term


@dataclass(frozen=True)
class Lam(Term):
    name: str
    body: Term


@dataclass(frozen=True)
class App(Term):
    func: Term
    argm: Term


@dataclass(frozen=True)
class Ctr(Term):
    name: str
    args: tuple[Term, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


@dataclass(frozen=True)
class U60(Term):
    """A 60-bit unsigned integer literal."""

    numb: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "numb", self.numb & U60_MASK)


@dataclass(frozen=True)
class F60(Term):
    """A floating point literal."""

    value: float


@dataclass(frozen=True)
class Op2(Term):
    oper: Oper
    val0: Term
    val1: Term


@dataclass(frozen=True)
class Rule:
    lhs: Term
    rhs: Term

    def __str__(self) -> str:
        return f"{self.lhs} = {self.rhs}"


@dataclass
class File:
    rules: list[Rule] = field(default_factory=list)
    smaps: list[tuple[str, list[bool]]] = field(default_factory=list)

    def __str__(self) -> str:
        return "\n".join(str(rule) for rule in self.rules)


# Pretty printing
# ---------------

def _code_point(numb: int) -> str | None:
    numb &= 0xFFFFFFFF
    if numb > 0x10FFFF or 0xD800 <= numb <= 0xDFFF:
        return None
    return chr(numb)


def _string_sugar(term: Term) -> str | None:
    chars: list[str] = []
    while isinstance(term, Ctr):
        if term.name == "Data.String.cons" and len(term.args) == 2 and isinstance(term.args[0], U60):
            char = _code_point(term.args[0].numb)
            if char is None:
                return None
            chars.append(char)
            term = term.args[1]
            continue
        if term.name == "Data.String.nil" and not term.args:
            return '"' + "".join(chars) + '"'
        return None
    return None


def _list_sugar(term: Term) -> str | None:
    items: list[str] = []
    while isinstance(term, Ctr):
        if term.name == "Data.List.cons" and len(term.args) == 2:
            items.append(str(term.args[0]))
            term = term.args[1]
            continue
        if term.name == "Data.List.nil" and not term.args:
            return "[" + ", ".join(items) + "]"
        return None
    return None


def _show(term: Term) -> str:
    match term:
        case Var(name):
            return name
        case Dup(nam0, nam1, expr, body):
            return f"dup {nam0} {nam1} = {expr}; {body}"
        case Sup(val0, val1):
            return f"{{{val0} {val1}}}"
        case Let(name, expr, body):
            return f"let {name} = {expr}; {body}"
        case Lam(name, body):
            return f"λ{name} {body}"
        case App():
            args: list[Term] = []
            head: Term = term
            while isinstance(head, App):
                args.append(head.argm)
                head = head.func
            return f"({head} {' '.join(str(arg) for arg in reversed(args))})"
        case Ctr(name, args):
            sugared = _string_sugar(term) or _list_sugar(term)
            if sugared is not None:
                return sugared
            return "(" + name + "".join(f" {arg}" for arg in args) + ")"
        case U60(numb):
            return str(numb)
        case F60(value):
            return repr(float(value))
        case Op2(oper, val0, val1):
            return f"({oper} {val0} {val1})"
    raise TypeError(f"not a term: {term!r}")


# Symbol hashing (SipHash-1-3 with zero keys)
# -------------------------------------------

_M64 = (1 << 64) - 1


def _rotl(value: int, bits: int) -> int:
    return ((value << bits) | (value >> (64 - bits))) & _M64


def _sip_round(v0: int, v1: int, v2: int, v3: int) -> tuple[int, int, int, int]:
    v0 = (v0 + v1) & _M64
    v1 = _rotl(v1, 13) ^ v0
    v0 = _rotl(v0, 32)
    v2 = (v2 + v3) & _M64
    v3 = _rotl(v3, 16) ^ v2
    v0 = (v0 + v3) & _M64
    v3 = _rotl(v3, 21) ^ v0
    v2 = (v2 + v1) & _M64
    v1 = _rotl(v1, 17) ^ v2
    v2 = _rotl(v2, 32)
    return v0, v1, v2, v3


def _siphash13(data: bytes, k0: int = 0, k1: int = 0) -> int:
    v0 = k0 ^ 0x736F6D6570736575
    v1 = k1 ^ 0x646F72616E646F6D
    v2 = k0 ^ 0x6C7967656E657261
    v3 = k1 ^ 0x7465646279746573
    whole = len(data) - len(data) % 8
    for start in range(0, whole, 8):
        word = int.from_bytes(data[start:start + 8], "little")
        v3 ^= word
        v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
        v0 ^= word
    last = ((len(data) & 0xFF) << 56) | int.from_bytes(data[whole:], "little")
    v3 ^= last
    v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
    v0 ^= last
    v2 ^= 0xFF
    for _ in range(3):
        v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
    return v0 ^ v1 ^ v2 ^ v3


# Parser
# ------

class _Parser:
    def __init__(self, code: str) -> None:
        self.code = code
        self.pos = 0

    # Lexical helpers

    def _error(self, expected: str) -> ParseError:
        return ParseError(expected, self.code, self.pos)

    def _skip(self) -> None:
        code = self.code
        while self.pos < len(code):
            if code[self.pos].isspace():
                self.pos += 1
            elif code.startswith("//", self.pos):
                newline = code.find("\n", self.pos)
                self.pos = len(code) if newline < 0 else newline + 1
            else:
                break

    def _head(self) -> str:
        self._skip()
        return self.code[self.pos] if self.pos < len(self.code) else "\0"

    def _sees(self, text: str) -> bool:
        self._skip()
        return self.code.startswith(text, self.pos)

    def _take(self, text: str) -> bool:
        if self._sees(text):
            self.pos += len(text)
            return True
        return False

    def _expect(self, text: str) -> None:
        if not self._take(text):
            raise self._error(repr(text))

    def _name(self) -> str:
        self._skip()
        start = self.pos
        while self.pos < len(self.code) and self.code[self.pos] in _NAME_CHARS:
            self.pos += 1
        return self.code[start:self.pos]

    def _nonempty_name(self, what: str = "name") -> str:
        name = self._name()
        if not name:
            raise self._error(what)
        return name

    def at_end(self) -> bool:
        self._skip()
        return self.pos >= len(self.code)

    # Lookahead guards

    def _looks_like_ctr(self) -> bool:
        start = self.pos
        self._take("(")
        head = self._head()
        self.pos = start
        return head in string.ascii_uppercase and head != ""

    def _looks_like_op2(self) -> bool:
        start = self.pos
        opened = self._take("(")
        head = self._head()
        self.pos = start
        return opened and head in _OP_CHARS

    def _looks_like_named_ask(self) -> bool:
        start = self.pos
        found = self._take("ask ") and self._name() != "" and self._take("=")
        self.pos = start
        return found

    # Terms

    def term(self) -> Term:
        self._skip()
        if self._sees("let "):
            return self._let()
        if self._sees("dup "):
            return self._dup()
        if self._sees("λ") or self._sees("@"):
            return self._lam()
        if self._looks_like_ctr():
            return self._ctr()
        if self._looks_like_op2():
            return self._op2()
        if self._sees("("):
            return self._app()
        if self._sees("{"):
            return self._sup()
        head = self._head()
        if head in string.digits and head != "":
            return self._num()
        if self._sees("%"):
            return self._symbol()
        if head == "'":
            return self._char()
        if head in ('"', "`"):
            return self._string()
        if self._sees("["):
            return self._list()
        if self._sees("if "):
            return self._if()
        if self._sees("!"):
            self._take("!")
            return self.term()
        if self._looks_like_named_ask():
            return self._named_ask()
        if self._sees("ask "):
            return self._anon_ask()
        if head in _VAR_START:
            return Var(self._name())
        raise self._error("term")

    def _let(self) -> Term:
        self._expect("let ")
        name = self._nonempty_name()
        self._expect("=")
        expr = self.term()
        self._take(";")
        return Let(name, expr, self.term())

    def _dup(self) -> Term:
        self._expect("dup ")
        nam0 = self._nonempty_name()
        nam1 = self._nonempty_name()
        self._expect("=")
        expr = self.term()
        self._take(";")
        return Dup(nam0, nam1, expr, self.term())

    def _lam(self) -> Term:
        if not self._take("λ"):
            self._expect("@")
        name = self._name()
        return Lam(name, self.term())

    def _ctr(self) -> Term:
        opened = self._take("(")
        name = self._nonempty_name()
        args: list[Term] = []
        if opened:
            while not self._take(")"):
                args.append(self.term())
        return Ctr(name, args)

    def _oper(self) -> Oper:
        for oper in _OPER_PARSE_ORDER:
            if self._take(oper.value):
                return oper
        raise self._error("operator")

    def _op2(self) -> Term:
        self._take("(")
        oper = self._oper()
        val0 = self.term()
        val1 = self.term()
        self._take(")")
        return Op2(oper, val0, val1)

    def _app(self) -> Term:
        self._expect("(")
        items: list[Term] = []
        while not self._take(")"):
            items.append(self.term())
        if not items:
            return U60(0)
        return reduce(App, items)

    def _sup(self) -> Term:
        self._expect("{")
        val0 = self.term()
        val1 = self.term()
        self._expect("}")
        return Sup(val0, val1)

    def _num(self) -> Term:
        start = self.pos
        text = self._nonempty_name("number")
        if text.startswith("0x"):
            digits = text[2:]
            if not digits or any(char not in string.hexdigits for char in digits):
                raise ParseError("hexadecimal number", self.code, start)
            value = int(digits, 16)
            if value >= _U64_LIMIT:
                raise ParseError("number below 2^64", self.code, start)
            return U60(value)
        if "." in text:
            if "_" in text or "$" in text:
                raise ParseError("floating point number", self.code, start)
            try:
                return F60(float(text))
            except ValueError:
                raise ParseError("floating point number", self.code, start) from None
        if not all(char in string.digits for char in text):
            raise ParseError("number", self.code, start)
        value = int(text)
        if value >= _U64_LIMIT:
            raise ParseError("number below 2^64", self.code, start)
        return U60(value)

    def _symbol(self) -> Term:
        self._take("%")
        name = self._name()
        return U60(_siphash13(name.encode()))

    def _char(self) -> Term:
        self._take("'")
        if self.pos >= len(self.code):
            raise self._error("character")
        char = self.code[self.pos]
        self.pos += 1
        self._take("'")
        return U60(ord(char))

    def _string(self) -> Term:
        start = self.pos
        delim = self.code[self.pos]
        self.pos += 1
        chars: list[str] = []
        while True:
            if self.pos >= len(self.code):
                raise ParseError(f"closing {delim}", self.code, start)
            char = self.code[self.pos]
            self.pos += 1
            if char == delim or char == "\0":
                break
            chars.append(char)
        result: Term = Ctr("Data.String.nil")
        for char in reversed(chars):
            result = Ctr("Data.String.cons", (U60(ord(char)), result))
        return result

    def _list(self) -> Term:
        self._take("[")
        elems: list[Term] = []
        while not self._take("]"):
            elems.append(self.term())
            self._take(",")
        result: Term = Ctr("Data.List.nil")
        for elem in reversed(elems):
            result = Ctr("Data.List.cons", (elem, result))
        return result

    def _if(self) -> Term:
        self._expect("if ")
        cond = self.term()
        self._expect("{")
        if_true = self.term()
        self._expect("}")
        self._expect("else")
        self._expect("{")
        if_false = self.term()
        self._expect("}")
        return Ctr("Data.U60.if", (cond, if_true, if_false))

    def _named_ask(self) -> Term:
        self._expect("ask ")
        name = self._nonempty_name()
        self._expect("=")
        func = self.term()
        self._take(";")
        return App(func, Lam(name, self.term()))

    def _anon_ask(self) -> Term:
        self._expect("ask ")
        func = self.term()
        self._take(";")
        return App(func, Lam("*", self.term()))

    # Declarations

    def rule(self) -> Rule:
        lhs = self.term()
        self._expect("=")
        return Rule(lhs, self.term())

    def smap(self) -> tuple[str, list[bool]] | None:
        if not self._take("("):
            return None
        name = self._nonempty_name()
        stricts: list[bool] = []
        while not self._take(")"):
            stricts.append(self._take("!"))
            self.term()
        return name, stricts

    def file(self) -> File:
        parsed = File()
        while not self.at_end():
            start = self.pos
            smap = self.smap()
            self.pos = start
            if smap is not None:
                parsed.smaps.append(smap)
            parsed.rules.append(self.rule())
        return parsed


def read_term(code: str) -> Term:
    """Parse one term from the start of ``code``."""
    return _Parser(code).term()


def read_rule(code: str) -> Rule:
    """Parse one ``lhs = rhs`` rule from the start of ``code``."""
    return _Parser(code).rule()


def read_file(code: str) -> File:
    """Parse a whole file of rules, collecting strictness maps."""
    return _Parser(code).file()