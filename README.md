# milu

milu is a small, statically typed expression language. Each expression is
parsed into a tree, checked for types against a context, and then evaluated.
It suits rule filters, log formats and other short expressions that a host
program runs against its own data.

## Installing

```
pip install .
```

To run the tests, install the `test` extra and run `pytest`.

## The language

- Literals: integers (`42`, `0x2a`, `0o52`, `0b101010`; values must fit in a
  signed 64-bit integer), booleans (`true`, `false`), strings
  (`"a\tb\u{1F602}"`), arrays (`[1, 2, 3]`) and tuples (`(1, "two", false)`).
- Template strings: `` `x=${to_string(1+2)}` ``.
- Operators, from the tightest binding to the loosest: indexing `a[i]`,
  access `t.0` and `obj.name`, calls `f(x)`; the unary operators `!`, `~` and
  `-`; `* / %`; `+ -`; `<< >>`; `> <`; `== != =~ !~` and `_:`
  (membership); `&`, `^`, `|`; `&&` or `and`; `||` or `or`.
- Conditionals: `if a then b else c`, or `a ? b : c`.
- Local bindings: `let a=1; b=2 in a+b`.
- Comments: `# to the end of the line` and `/* inline */`.
- Built-in functions: `to_string`, `to_integer`, `split`, `strcat`.

Integer arithmetic wraps around at 64 bits; division and `%` truncate toward
zero. `=~` and `!~` test a string against a regular expression.

The operator parser does not accept `>=`, `<=`, `>>>` or `^^`/`xor`. The
matching functions exist in `milu.stdlib` (`GreaterOrEqual`, `LesserOrEqual`,
`ShiftRightUnsigned`, `Xor`) and can be built into a tree with `make_call`.

## Using it from Python

```python
from milu.parser import parse
from milu.stdlib import default_context

expr = parse("let a=1; b=2 in to_string(a+b)")
ctx = default_context()
print(expr.type_of(ctx))    # string
print(expr.value_of(ctx))   # "3"
```

A host program puts its own values into a `ScriptContext` (from
`milu.script`) with `ScriptContext.set`; `to_value` turns plain Python
integers, booleans, strings, lists and tuples into script values. Objects of
its own can be exposed as `NativeObject` subclasses that return accessible,
indexable, callable or evaluatable views from their `as_*` methods.

Syntax errors are raised as `milu.parser.ScriptSyntaxError`. Type and
evaluation errors are raised as `milu.script.ScriptError`. The string-literal
parsers in `milu.strings` raise `StringParseError`.

## The interactive shell

```
milu-repl            # interactive; end each expression with ;;
milu-repl file.milu  # evaluate one file and print "value : type"
milu-repl --version
```

In the interactive loop, lines are collected until one ends with `;;`, then
joined and evaluated in a shared context. On exit the entered expressions are
appended to `history.txt` in the current directory. The shell reads plain
lines: it has no line editing, completion or history recall.