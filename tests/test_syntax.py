import pytest

from hvmlang.syntax import (
    App,
    Ctr,
    Dup,
    F60,
    File,
    Lam,
    Let,
    Op2,
    Oper,
    ParseError,
    Rule,
    Sup,
    U60,
    Var,
    read_file,
    read_rule,
    read_term,
)


@pytest.mark.parametrize(
    "code",
    [
        "(Foo a (Bar b))",
        "λx (f x)",
        "dup a b = x; (+ a b)",
        "let x = 1; x",
        "{a b}",
        "[1, 2, 3]",
        "[]",
        '"abc"',
        '""',
        "(f a b c)",
        "(Zero)",
        "(* (- x 1) y)",
    ],
)
def test_round_trip(code):
    assert str(read_term(code)) == code


@pytest.mark.parametrize(
    "code",
    [
        "(Double (Zero)) = (Zero)",
        "(Double (Succ x0)) = let x0.0 = x0; (Double (Succ (Succ x0.0)))",
    ],
)
def test_rule_round_trip(code):
    assert str(read_rule(code)) == code


@pytest.mark.parametrize("oper", list(Oper))
def test_every_operator_round_trips(oper):
    code = f"({oper.value} a b)"
    term = read_term(code)
    assert term == Op2(oper, Var("a"), Var("b"))
    assert str(term) == code


def test_oper_from_symbol():
    assert Oper.from_symbol("<<") is Oper.SHL
    assert Oper.from_symbol("!=") is Oper.NEQ
    with pytest.raises(ValueError):
        Oper.from_symbol("=")


def test_application_folds_left():
    assert read_term("(f a b)") == App(App(Var("f"), Var("a")), Var("b"))


def test_single_parenthesised_term_is_itself():
    assert read_term("(x)") == Var("x")


def test_empty_parens_is_zero():
    assert read_term("()") == U60(0)


def test_bare_constructor_has_no_args():
    assert read_term("Zero") == Ctr("Zero", ())


def test_constructor_args_are_tuple():
    assert Ctr("Foo", [Var("a")]) == Ctr("Foo", (Var("a"),))


def test_lambda_symbols_agree():
    assert read_term("@x x") == read_term("λx x") == Lam("x", Var("x"))


def test_numbers():
    assert read_term("42") == U60(42)
    assert read_term("0x1F") == U60(int("1F", 16))
    assert read_term("1.5") == F60(1.5)
    assert str(read_term("1.5")) == "1.5"


def test_u60_is_masked_to_sixty_bits():
    assert U60(1 << 60).numb == 0


def test_char_sugar():
    assert read_term("'a'") == U60(ord("a"))


def test_string_sugar_structure():
    expected = Ctr(
        "Data.String.cons",
        (U60(ord("h")), Ctr("Data.String.cons", (U60(ord("i")), Ctr("Data.String.nil")))),
    )
    assert read_term('"hi"') == expected
    assert read_term("`hi`") == expected


def test_list_with_non_list_tail_is_plain():
    term = Ctr("Data.List.cons", (U60(1), Var("xs")))
    assert str(term) == "(Data.List.cons 1 xs)"


def test_if_sugar():
    term = read_term("if x { 1 } else { 2 }")
    assert term == Ctr("Data.U60.if", (Var("x"), U60(1), U60(2)))


def test_ask_sugars():
    assert read_term("ask x = f; x") == App(Var("f"), Lam("x", Var("x")))
    assert read_term("ask f; y") == App(Var("f"), Lam("*", Var("y")))


def test_bang_is_transparent():
    assert read_term("!x") == Var("x")


def test_symbol_sugar_is_deterministic():
    first = read_term("%foo")
    assert first == read_term("%foo")
    assert first != read_term("%bar")
    assert 0 <= first.numb < (1 << 60)


def test_let_dup_sup_structures():
    assert read_term("let a = b; a") == Let("a", Var("b"), Var("a"))
    assert read_term("dup a b = c; a") == Dup("a", "b", Var("c"), Var("a"))
    assert read_term("{x y}") == Sup(Var("x"), Var("y"))


def test_read_file_collects_rules_and_smaps():
    parsed = read_file("// a comment\n(Foo !a b) = a\n(Main) = (Foo 1 2)\n")
    assert isinstance(parsed, File)
    assert parsed.smaps == [("Foo", [True, False]), ("Main", [])]
    assert parsed.rules[0] == Rule(Ctr("Foo", (Var("a"), Var("b"))), Var("a"))
    assert str(parsed) == "(Foo a b) = a\n(Main) = (Foo 1 2)"


def test_read_empty_file():
    parsed = read_file("   // nothing\n")
    assert parsed.rules == []
    assert parsed.smaps == []


@pytest.mark.parametrize(
    "code",
    ["", "0xZZ", "12ab", '"abc', "(= a b)", "{a b", ")"],
)
def test_term_errors(code):
    with pytest.raises(ParseError):
        read_term(code)


def test_rule_without_equals_fails():
    with pytest.raises(ParseError):
        read_rule("(Foo a)")


def test_parse_error_position():
    with pytest.raises(ParseError) as info:
        read_term("\n  )")
    assert info.value.index == 3
    assert "line 2" in str(info.value)
    assert info.value.expected == "term"