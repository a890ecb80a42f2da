# hvmlang

Front end for a small higher-order rewrite language. Programs are sets of
rules such as

```
(Double (Zero))   = (Zero)
(Double (Succ x)) = (Succ (Succ (Double x)))
```

The package parses source text into terms and rules, checks and linearises
variable use, splits nested patterns into flat auxiliary rules, and groups
everything into a rulebook that gives each constructor a numeric id and
records which arguments are strict.

## Installation

```
pip install .
```

Install with `pip install .[test]` to get pytest as well.

## Parsing

```python
from hvmlang.syntax import read_term, read_rule, read_file

term = read_term("(+ 1 2)")
print(term)                  # (+ 1 2)

rule = read_rule("(Foo a) = (Bar a a)")
print(rule)                  # (Foo a) = (Bar a a)

program = read_file("""
  (Double (Zero))   = (Zero)
  (Double (Succ x)) = (Succ (Succ (Double x)))
""")
print(len(program.rules))    # 2
```

Input that does not parse raises `hvmlang.syntax.ParseError`.

Terms are plain dataclasses: `Var`, `Dup`, `Sup`, `Let`, `Lam`, `App`,
`Ctr`, `U60`, `F60` and `Op2`, all subclasses of `Term`. Binary operators
are the members of the `Oper` enum; `Oper.from_symbol("<=")` looks one up
by its symbol.

Beyond the core forms the parser accepts sugar for strings (`"abc"`),
characters (`'a'`), lists (`[1, 2, 3]`), `if c { t } else { f }` and
`ask x = f; body`.

## Sanitizing

`sanitize_rule` gives every variable a unique name, replaces unused ones
with `*`, and adds `dup` nodes for variables used more than once:

```python
from hvmlang.syntax import read_rule
from hvmlang.sanitize import sanitize_rule

rule = read_rule("(Foo a b) = (+ a a)")
print(sanitize_rule(rule))
# (Foo x0 *) = dup x0.0 x0.1 = x0; (+ x0.0 x0.1)
```

An invalid left-hand side or an unbound variable raises
`hvmlang.sanitize.SanitizeError`. `sanitize_rules` applies this to a
whole list. `global_name_kind` tells whether a name is a global (scopeless)
variable name, and which kind.

## Flattening nested patterns

`flatten` rewrites rules whose patterns match more than one constructor
deep into chains of flat rules with generated helper functions;
`subst` replaces a free variable in a term.

```python
from hvmlang.flatten import flatten
```

## Rulebooks

```python
from hvmlang.syntax import read_file
from hvmlang.rulebook import gen_rulebook

book = gen_rulebook(read_file("""
  (Double (Zero))   = (Zero)
  (Double (Succ x)) = (Succ (Succ (Double x)))
"""))
print(book.id_to_name[0])        # Double
print(book.ctr_is_fun["Double"]) # True
```

`new_rulebook`, `add_group` and `group_rules` expose the individual steps
used by `gen_rulebook`; a `RuleGroup` holds the arity of a function and its
rules.