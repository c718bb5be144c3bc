"""Built-in functions and operators of the expression language."""

from __future__ import annotations

import operator
import re
from typing import Sequence

from .script import (
    Array,
    Boolean,
    Call,
    Callable,
    Evaluatable,
    Identifier,
    Integer,
    NativeObject,
    ScriptContext,
    ScriptError,
    SequenceIndexer,
    String,
    Tuple,
    Type,
    TypeKind,
    Value,
    to_value,
)

__all__ = [
    "Function",
    "Index",
    "Access",
    "If",
    "ScopeBinding",
    "Scope",
    "IsMemberOf",
    "Not",
    "BitNot",
    "Negative",
    "Plus",
    "Minus",
    "Multiply",
    "Divide",
    "Mod",
    "BitAnd",
    "BitOr",
    "BitXor",
    "ShiftLeft",
    "ShiftRight",
    "ShiftRightUnsigned",
    "And",
    "Or",
    "Xor",
    "Greater",
    "GreaterOrEqual",
    "Lesser",
    "LesserOrEqual",
    "Equal",
    "NotEqual",
    "Like",
    "NotLike",
    "ToString",
    "ToInteger",
    "Split",
    "StringConcat",
    "default_context",
]

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1
_U64_MASK = (1 << 64) - 1
_INTEGER_TEXT = re.compile(r"[+-]?[0-9]+")


def _wrap(n: int) -> int:
    """Wrap an integer into the signed 64-bit range."""
    return ((n - _I64_MIN) & _U64_MASK) + _I64_MIN


def _as_int(value: Value) -> int:
    if isinstance(value, Integer):
        return value.value
    raise ScriptError(f"unable to cast {value!r} into i64")


def _as_bool(value: Value) -> bool:
    if isinstance(value, Boolean):
        return value.value
    raise ScriptError(f"unable to cast {value!r} into bool")


def _as_str(value: Value) -> str:
    if isinstance(value, String):
        return value.value
    raise ScriptError(f"unable to cast {value!r} into String")


def _as_array(value: Value) -> tuple:
    if isinstance(value, Array):
        return value.items
    raise ScriptError(f"unable to cast {value!r} into Vec<Value>")


def _as_vec(value: Value) -> tuple:
    if isinstance(value, (Array, Tuple)):
        return value.items
    raise ScriptError(f"expected an array or tuple, got {value}")


def _as_name(value: Value) -> str:
    if isinstance(value, String):
        return value.value
    if isinstance(value, Identifier):
        return value.name
    raise ScriptError(f"expected a name, got {value}")


def _pick(items: Sequence, index: int):
    if not 0 <= index < len(items):
        raise ScriptError(f"tuple index out of range: {index}")
    return items[index]


class Function(NativeObject, Callable):
    """A built-in callable with declared parameter types and return type.

    Subclasses using the generic :meth:`call` implement ``_apply``, which
    receives the context and the (evaluated, unless ``RAW``) arguments.
    """

    PARAMS: tuple = ()
    RETURNS: Type = Type.any()
    RAW = False

    @classmethod
    def stub(cls) -> "Function":
        return cls()

    @classmethod
    def make_call(cls, *args) -> Call:
        return Call(cls(), tuple(to_value(a) for a in args))

    def as_callable(self) -> "Function":
        return self

    def _require_arity(self, args: Sequence[Value]) -> None:
        if len(args) < len(self.PARAMS):
            raise ScriptError(
                f"{self} expects {len(self.PARAMS)} arguments, got {len(args)}"
            )

    def signature(self, ctx: ScriptContext, args: Sequence[Value]) -> Type:
        types = [arg.real_type_of(ctx) for arg in args]
        self._require_arity(args)
        for (name, required), found in zip(self.PARAMS, types):
            if found != required:
                raise ScriptError(
                    f"argument {name} type mismatch, required: {required} provided: {found!r}"
                )
        return self.RETURNS

    def call(self, ctx: ScriptContext, args: Sequence[Value]) -> Value:
        self._require_arity(args)
        params = list(args[: len(self.PARAMS)])
        if not self.RAW:
            params = [arg.real_value_of(ctx) for arg in params]
        return self._apply(ctx, *params)

    def unresolved_ids(self, args: Sequence[Value]) -> set:
        ids: set = set()
        for arg in args:
            ids |= arg.unresolved_ids()
        return ids


class Index(Function):
    """Dynamic integer indexing of arrays and indexable native objects."""

    PARAMS = (("obj", Type.any()), ("index", Type.any()))

    def signature(self, ctx: ScriptContext, args: Sequence[Value]) -> Type:
        self._require_arity(args)
        obj, index = args[0], args[1]
        if index.type_of(ctx) != Type.integer():
            raise ScriptError("Index not a integer type")
        if isinstance(obj, NativeObject):
            indexable = obj.as_indexable()
            if indexable is None:
                raise ScriptError("NativeObject not in indexable")
            return indexable.type_of_member(ctx)
        obj_type = obj.type_of(ctx)
        if obj_type.kind is TypeKind.ARRAY:
            return obj_type.element
        raise ScriptError(f"Object does not implement Indexable: {obj}")

    def call(self, ctx: ScriptContext, args: Sequence[Value]) -> Value:
        self._require_arity(args)
        index = _as_int(args[1].value_of(ctx))
        obj = args[0].value_of(ctx)
        if isinstance(obj, Array):
            indexable = SequenceIndexer(obj.items)
        elif isinstance(obj, NativeObject):
            indexable = obj.as_indexable()
            if indexable is None:
                raise ScriptError("NativeObject does not implement Indexible")
        else:
            raise ScriptError("type mismatch")
        return indexable.get_item(index).value_of(ctx)


class Access(Function):
    """Member access on tuples (by integer) and accessible native objects (by name)."""

    PARAMS = (("obj", Type.any()), ("index", Type.any()))

    @staticmethod
    def _member_name(index: Value) -> str:
        if isinstance(index, Identifier):
            return index.name
        raise ScriptError(f"Can not access a NativeObject with: {index!r}")

    @staticmethod
    def _tuple_position(index: Value) -> int:
        if isinstance(index, Integer):
            return index.value
        raise ScriptError(f"Can not access a tuple with: {index}")

    def _tuple_type(self, obj_type: Type, index: Value) -> Type:
        position = self._tuple_position(index)
        if obj_type.kind is not TypeKind.TUPLE:
            raise ScriptError(f"Can not access type: {obj_type}")
        return _pick(obj_type.members, position)

    def _tuple_value(self, ctx: ScriptContext, obj: Value, index: Value) -> Value:
        position = self._tuple_position(index)
        if not isinstance(obj, Tuple):
            raise ScriptError(f"Can not access type: {obj}")
        return _pick(obj.items, position).value_of(ctx)

    def signature(self, ctx: ScriptContext, args: Sequence[Value]) -> Type:
        self._require_arity(args)
        obj, index = args[0], args[1]
        obj_type = obj.type_of(ctx)
        if obj_type.kind is TypeKind.NATIVE:
            native = obj_type.obj
            accessible = native.as_accessible()
            if accessible is not None:
                return accessible.type_of_name(self._member_name(index), ctx)
            evaluatable = native.as_evaluatable()
            if evaluatable is not None:
                return self._tuple_type(evaluatable.type_of(ctx), index)
            raise ScriptError("NativeObject not accessible or tuple")
        if obj_type.kind is TypeKind.TUPLE:
            return self._tuple_type(obj_type, index)
        raise ScriptError(f"Object {obj!r} is not Tuple nor Accessible")

    def call(self, ctx: ScriptContext, args: Sequence[Value]) -> Value:
        self._require_arity(args)
        obj = args[0].value_of(ctx)
        index = args[1]
        if isinstance(obj, NativeObject):
            accessible = obj.as_accessible()
            if accessible is not None:
                return accessible.get_attr(self._member_name(index)).value_of(ctx)
            evaluatable = obj.as_evaluatable()
            if evaluatable is not None:
                return self._tuple_value(ctx, evaluatable.value_of(ctx), index)
            raise ScriptError("NativeObject not accessible or tuple")
        if isinstance(obj, Tuple):
            return self._tuple_value(ctx, obj, index)
        raise ScriptError(f"Object {obj!r} is not Tuple nor Accessible")

    def unresolved_ids(self, args: Sequence[Value]) -> set:
        # The member (second argument) is always a literal name or integer.
        return args[0].unresolved_ids() if args else set()


class If(Function):
    """Conditional expression; both branches must share a type."""

    PARAMS = (("cond", Type.boolean()), ("yes", Type.any()), ("no", Type.any()))

    def signature(self, ctx: ScriptContext, args: Sequence[Value]) -> Type:
        types = [arg.type_of(ctx) for arg in args]
        self._require_arity(args)
        cond, yes, no = types[:3]
        if Type.boolean() != cond:
            raise ScriptError(f"Condition type {cond!r} is not a Boolean")
        if yes != no:
            raise ScriptError(f"Condition return type must be same: {yes!r} {no!r}")
        return yes

    def call(self, ctx: ScriptContext, args: Sequence[Value]) -> Value:
        self._require_arity(args)
        if _as_bool(args[0].value_of(ctx)):
            return args[1].value_of(ctx)
        return args[2].value_of(ctx)


class _BindingEvaluator(Evaluatable):
    def __init__(self, binding: "ScopeBinding"):
        self._binding = binding

    def type_of(self, ctx: ScriptContext) -> Type:
        return self._binding.value.type_of(self._binding.ctx)

    def value_of(self, ctx: ScriptContext) -> Value:
        return self._binding.value.value_of(self._binding.ctx).value_of(ctx)


class ScopeBinding(NativeObject):
    """A let-bound expression, evaluated lazily in the context it was bound in."""

    def __init__(self, ctx: ScriptContext, value: Value):
        self.ctx = ctx
        self.value = value

    def as_evaluatable(self) -> Evaluatable:
        return _BindingEvaluator(self)

    def gen_hash(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"ScopeBinding {{ value: {self.value!r} }}"

    __str__ = __repr__


class Scope(Function):
    """``let name=value; ... in expr``: evaluates ``expr`` with new bindings."""

    PARAMS = (("vars", Type.array_of(Type.any())), ("expr", Type.any()))

    @staticmethod
    def _make_context(bindings: Value, ctx: ScriptContext) -> ScriptContext:
        scope = ScriptContext(ctx)
        for binding in _as_vec(bindings):
            pair = _as_vec(binding)
            scope.set(_as_name(pair[0]), ScopeBinding(ctx, pair[1]))
        return scope

    def signature(self, ctx: ScriptContext, args: Sequence[Value]) -> Type:
        self._require_arity(args)
        return args[1].type_of(self._make_context(args[0], ctx))

    def call(self, ctx: ScriptContext, args: Sequence[Value]) -> Value:
        self._require_arity(args)
        return args[1].value_of(self._make_context(args[0], ctx))

    def unresolved_ids(self, args: Sequence[Value]) -> set:
        unresolved = args[1].unresolved_ids()
        ids: set = set()
        known: set = set()
        for binding in _as_vec(args[0]):
            pair = _as_vec(binding)
            known.add(pair[0])
            # A binding does not see the names bound alongside it.
            ids |= pair[1].unresolved_ids()
        return ids | (unresolved - known)


class IsMemberOf(Function):
    """Membership test of a value in an array."""

    PARAMS = (("a", Type.any()), ("ary", Type.array_of(Type.any())))
    RETURNS = Type.boolean()

    def signature(self, ctx: ScriptContext, args: Sequence[Value]) -> Type:
        types = [arg.type_of(ctx) for arg in args]
        self._require_arity(args)
        subject, ary = types[0], types[1]
        if ary.kind is not TypeKind.ARRAY:
            raise ScriptError(f"argument type {ary!r} is not an Array")
        if subject != ary.element:
            raise ScriptError(
                "subject must have on same type with array: "
                f"subj={subject!r} array={ary.element!r}"
            )
        return Type.boolean()

    def _apply(self, ctx: ScriptContext, a: Value, ary: Value) -> Value:
        for item in _as_array(ary):
            if item.value_of(ctx) == a:
                return Boolean(True)
        return Boolean(False)


class Not(Function):
    PARAMS = (("b", Type.boolean()),)
    RETURNS = Type.boolean()

    def _apply(self, ctx: ScriptContext, b: Value) -> Value:
        return Boolean(not _as_bool(b))


class BitNot(Function):
    PARAMS = (("b", Type.integer()),)
    RETURNS = Type.integer()

    def _apply(self, ctx: ScriptContext, b: Value) -> Value:
        return Integer(~_as_int(b))


class Negative(Function):
    PARAMS = (("b", Type.integer()),)
    RETURNS = Type.integer()

    def _apply(self, ctx: ScriptContext, b: Value) -> Value:
        return Integer(_wrap(-_as_int(b)))


class _IntegerOp(Function):
    PARAMS = (("a", Type.integer()), ("b", Type.integer()))
    RETURNS = Type.integer()

    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        return Integer(_wrap(self._compute(_as_int(a), _as_int(b))))


class Plus(_IntegerOp):
    def _compute(self, a: int, b: int) -> int:
        return a + b


class Minus(_IntegerOp):
    def _compute(self, a: int, b: int) -> int:
        return a - b


class Multiply(_IntegerOp):
    def _compute(self, a: int, b: int) -> int:
        return a * b


def _truncated_quotient(a: int, b: int) -> int:
    if b == 0:
        raise ScriptError("attempt to divide by zero")
    if a == _I64_MIN and b == -1:
        raise ScriptError("attempt to divide with overflow")
    quotient = abs(a) // abs(b)
    return -quotient if (a < 0) != (b < 0) else quotient


class Divide(_IntegerOp):
    def _compute(self, a: int, b: int) -> int:
        return _truncated_quotient(a, b)


class Mod(_IntegerOp):
    def _compute(self, a: int, b: int) -> int:
        return a - b * _truncated_quotient(a, b)


class BitAnd(_IntegerOp):
    def _compute(self, a: int, b: int) -> int:
        return a & b


class BitOr(_IntegerOp):
    def _compute(self, a: int, b: int) -> int:
        return a | b


class BitXor(_IntegerOp):
    def _compute(self, a: int, b: int) -> int:
        return a ^ b


class ShiftLeft(_IntegerOp):
    def _compute(self, a: int, b: int) -> int:
        return a << (b & 63)


class ShiftRight(_IntegerOp):
    def _compute(self, a: int, b: int) -> int:
        return a >> (b & 63)


class ShiftRightUnsigned(_IntegerOp):
    def _compute(self, a: int, b: int) -> int:
        return (a & _U64_MASK) >> (b & 63)


class _BooleanOp(Function):
    PARAMS = (("a", Type.boolean()), ("b", Type.boolean()))
    RETURNS = Type.boolean()
    RAW = True


class And(_BooleanOp):
    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        result = _as_bool(a.real_value_of(ctx)) and _as_bool(b.real_value_of(ctx))
        return Boolean(result)


class Or(_BooleanOp):
    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        result = _as_bool(a.real_value_of(ctx)) or _as_bool(b.real_value_of(ctx))
        return Boolean(result)


class Xor(_BooleanOp):
    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        left = _as_bool(a.real_value_of(ctx))
        right = _as_bool(b.real_value_of(ctx))
        return Boolean(left != right)


class _Compare(Function):
    PARAMS = (("a", Type.any()), ("b", Type.any()))
    RETURNS = Type.boolean()
    _OP = staticmethod(operator.eq)

    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        for kind in (Integer, String, Boolean):
            if isinstance(a, kind) and isinstance(b, kind):
                return Boolean(bool(self._OP(a.value, b.value)))
        raise ScriptError(f"cannot compare {a} with {b}")


class Greater(_Compare):
    _OP = staticmethod(operator.gt)


class GreaterOrEqual(_Compare):
    _OP = staticmethod(operator.ge)


class Lesser(_Compare):
    _OP = staticmethod(operator.lt)


class LesserOrEqual(_Compare):
    _OP = staticmethod(operator.le)


class Equal(_Compare):
    _OP = staticmethod(operator.eq)


class NotEqual(_Compare):
    _OP = staticmethod(operator.ne)


def _regex_matches(text: str, pattern: str) -> bool:
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        raise ScriptError(f"failed to compile regex: {exc}") from exc
    return compiled.search(text) is not None


class Like(Function):
    PARAMS = (("a", Type.string()), ("b", Type.string()))
    RETURNS = Type.boolean()

    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        return Boolean(_regex_matches(_as_str(a), _as_str(b)))


class NotLike(Function):
    PARAMS = (("a", Type.string()), ("b", Type.string()))
    RETURNS = Type.boolean()

    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        return Boolean(not _regex_matches(_as_str(a), _as_str(b)))


class ToString(Function):
    PARAMS = (("s", Type.any()),)
    RETURNS = Type.string()

    def _apply(self, ctx: ScriptContext, s: Value) -> Value:
        return String(str(s))


class ToInteger(Function):
    PARAMS = (("s", Type.string()),)
    RETURNS = Type.integer()

    def _apply(self, ctx: ScriptContext, s: Value) -> Value:
        text = _as_str(s)
        if _INTEGER_TEXT.fullmatch(text):
            number = int(text)
            if _I64_MIN <= number <= _I64_MAX:
                return Integer(number)
        raise ScriptError(f"failed to parse integer: {text}")


class Split(Function):
    PARAMS = (("a", Type.string()), ("b", Type.string()))
    RETURNS = Type.array_of(Type.string())

    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        text, delimiter = _as_str(a), _as_str(b)
        parts = ["", *text, ""] if delimiter == "" else text.split(delimiter)
        return Array(tuple(String(part) for part in parts))


class StringConcat(Function):
    PARAMS = (("a", Type.array_of(Type.string())),)
    RETURNS = Type.string()

    def _apply(self, ctx: ScriptContext, a: Value) -> Value:
        return String("".join(_as_str(item.real_value_of(ctx)) for item in _as_array(a)))


def default_context() -> ScriptContext:
    """A root context holding the built-in named functions."""
    ctx = ScriptContext()
    ctx.set("to_string", ToString.stub())
    ctx.set("to_integer", ToInteger.stub())
    ctx.set("split", Split.stub())
    ctx.set("strcat", StringConcat.stub())
    return ctx