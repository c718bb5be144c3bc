"""Core value, type and context model of the expression language."""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Any as _Any
from typing import Iterable, Mapping, Optional, Sequence

__all__ = [
    "ScriptError",
    "TypeKind",
    "Type",
    "Evaluatable",
    "Indexable",
    "Accessible",
    "Callable",
    "MappingAccessor",
    "SequenceIndexer",
    "ScriptContext",
    "Value",
    "Integer",
    "Boolean",
    "String",
    "Identifier",
    "Array",
    "Tuple",
    "NativeObject",
    "Call",
    "to_value",
]

_U64_MASK = 0xFFFF_FFFF_FFFF_FFFF


class ScriptError(Exception):
    """Raised when type inference or evaluation of a script fails."""


class TypeKind(Enum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ARRAY = "array"
    TUPLE = "tuple"
    NATIVE = "native"
    ANY = "any"


@dataclass(frozen=True, eq=False)
class Type:
    """A static type. ``Any`` compares equal to every other type."""

    kind: TypeKind
    element: Optional["Type"] = None
    members: tuple = ()
    obj: Optional["NativeObject"] = None

    @classmethod
    def string(cls) -> "Type":
        return cls(TypeKind.STRING)

    @classmethod
    def integer(cls) -> "Type":
        return cls(TypeKind.INTEGER)

    @classmethod
    def boolean(cls) -> "Type":
        return cls(TypeKind.BOOLEAN)

    @classmethod
    def any(cls) -> "Type":
        return cls(TypeKind.ANY)

    @classmethod
    def array_of(cls, element: "Type") -> "Type":
        return cls(TypeKind.ARRAY, element=element)

    @classmethod
    def tuple_of(cls, members: Iterable["Type"]) -> "Type":
        return cls(TypeKind.TUPLE, members=tuple(members))

    @classmethod
    def native(cls, obj: "NativeObject") -> "Type":
        return cls(TypeKind.NATIVE, obj=obj)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Type):
            return NotImplemented
        if self.kind is TypeKind.ANY or other.kind is TypeKind.ANY:
            return True
        if self.kind is not other.kind:
            return False
        if self.kind is TypeKind.ARRAY:
            return self.element == other.element
        if self.kind is TypeKind.TUPLE:
            return len(self.members) == len(other.members) and all(
                a == b for a, b in zip(self.members, other.members)
            )
        if self.kind is TypeKind.NATIVE:
            return self.obj == other.obj
        return True

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        if self.kind is TypeKind.ARRAY:
            return f"[{self.element}]"
        if self.kind is TypeKind.TUPLE:
            return "(" + ",".join(str(m) for m in self.members) + ")"
        if self.kind is TypeKind.NATIVE:
            return f"native@{self.obj.gen_hash() & _U64_MASK:x}"
        return self.kind.value

    def __repr__(self) -> str:
        return f"Type({self})"


class Evaluatable:
    """Something that has a type and a value within a context."""

    def type_of(self, ctx: "ScriptContext") -> Type:
        raise NotImplementedError

    def value_of(self, ctx: "ScriptContext") -> "Value":
        raise NotImplementedError


class Indexable:
    """Something that can be indexed by an integer."""

    def length(self) -> int:
        raise NotImplementedError

    def type_of_member(self, ctx: "ScriptContext") -> Type:
        raise NotImplementedError

    def get_item(self, index: int) -> "Value":
        raise NotImplementedError


class Accessible:
    """Something whose named members can be accessed."""

    def names(self) -> list:
        raise NotImplementedError

    def type_of_name(self, name: str, ctx: "ScriptContext") -> Type:
        raise NotImplementedError

    def get_attr(self, name: str) -> "Value":
        raise NotImplementedError


class Callable:
    """A function that can be called with unevaluated arguments."""

    def signature(self, ctx: "ScriptContext", args: Sequence["Value"]) -> Type:
        raise NotImplementedError

    def call(self, ctx: "ScriptContext", args: Sequence["Value"]) -> "Value":
        raise NotImplementedError

    def unresolved_ids(self, args: Sequence["Value"]) -> set:
        ids: set = set()
        for arg in args:
            ids |= arg.unresolved_ids()
        return ids


class MappingAccessor(Accessible):
    """Accessible view over a mapping of names to values."""

    def __init__(self, mapping: Mapping[str, "Value"]):
        self._mapping = mapping

    def names(self) -> list:
        return list(self._mapping)

    def type_of_name(self, name: str, ctx: "ScriptContext") -> Type:
        return self.get_attr(name).type_of(ctx)

    def get_attr(self, name: str) -> "Value":
        try:
            return self._mapping[name]
        except KeyError:
            raise ScriptError(f"undefined: {name}") from None


class SequenceIndexer(Indexable):
    """Indexable view over a sequence of values; negative indices count from the end."""

    def __init__(self, items: Sequence["Value"]):
        self._items = items

    def length(self) -> int:
        return len(self._items)

    def type_of_member(self, ctx: "ScriptContext") -> Type:
        return self.get_item(0).type_of(ctx)

    def get_item(self, index: int) -> "Value":
        size = len(self._items)
        position = index if index >= 0 else size + index
        if position < 0 or position >= size:
            raise ScriptError(f"index out of bounds: {index}")
        return self._items[position]


class ScriptContext:
    """A scope of variables, optionally chained to a parent scope."""

    def __init__(self, parent: Optional["ScriptContext"] = None):
        self.parent = parent
        self.variables: dict = {}

    def lookup(self, name: str) -> "Value":
        scope: Optional[ScriptContext] = self
        while scope is not None:
            if name in scope.variables:
                return scope.variables[name]
            scope = scope.parent
        raise ScriptError(f'"{name}" is undefined')

    def set(self, name: str, value: "Value") -> None:
        self.variables[name] = value


def _debug_str(text: str) -> str:
    escapes = {'"': '\\"', "\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t", "\0": "\\0"}
    parts = []
    for ch in text:
        if ch in escapes:
            parts.append(escapes[ch])
        elif unicodedata.category(ch) == "Cc":
            parts.append(f"\\u{{{ord(ch):x}}}")
        else:
            parts.append(ch)
    return '"' + "".join(parts) + '"'


class Value:
    """Base of every node and value of the language."""

    def type_of(self, ctx: ScriptContext) -> Type:
        raise NotImplementedError

    def value_of(self, ctx: ScriptContext) -> "Value":
        return self

    def real_type_of(self, ctx: ScriptContext) -> Type:
        """Type of the value, looking through evaluatable native objects."""
        t = self.type_of(ctx)
        if t.kind is TypeKind.NATIVE:
            evaluatable = t.obj.as_evaluatable()
            if evaluatable is not None:
                return evaluatable.type_of(ctx)
        return t

    def real_value_of(self, ctx: ScriptContext) -> "Value":
        """Value, looking through evaluatable native objects."""
        v = self.value_of(ctx)
        if isinstance(v, NativeObject):
            evaluatable = v.as_evaluatable()
            if evaluatable is not None:
                return evaluatable.value_of(ctx)
        return v

    def unresolved_ids(self) -> set:
        """Identifiers referenced but not bound inside this value."""
        return set()

    def is_identifier(self) -> bool:
        return isinstance(self, Identifier)


@dataclass(frozen=True)
class Integer(Value):
    value: int

    def type_of(self, ctx: ScriptContext) -> Type:
        return Type.integer()

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Boolean(Value):
    value: bool

    def type_of(self, ctx: ScriptContext) -> Type:
        return Type.boolean()

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class String(Value):
    value: str

    def type_of(self, ctx: ScriptContext) -> Type:
        return Type.string()

    def __str__(self) -> str:
        return _debug_str(self.value)


@dataclass(frozen=True)
class Identifier(Value):
    name: str

    def type_of(self, ctx: ScriptContext) -> Type:
        return ctx.lookup(self.name).type_of(ctx)

    def value_of(self, ctx: ScriptContext) -> Value:
        return ctx.lookup(self.name).value_of(ctx)

    def unresolved_ids(self) -> set:
        return {self}

    def __str__(self) -> str:
        return f"<{self.name}>"


def _union_ids(items: Iterable[Value]) -> set:
    ids: set = set()
    for item in items:
        ids |= item.unresolved_ids()
    return ids


@dataclass(frozen=True)
class Array(Value):
    items: tuple = field(default=())

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    def type_of(self, ctx: ScriptContext) -> Type:
        if not self.items:
            return Type.array_of(Type.any())
        required = self.items[0].real_type_of(ctx)
        for item in self.items:
            found = item.real_type_of(ctx)
            if found != required:
                raise ScriptError(
                    "array member must have same type: "
                    f"required type={required}, mismatch type={found} item={item}"
                )
        return Type.array_of(required)

    def unresolved_ids(self) -> set:
        return _union_ids(self.items)

    def __str__(self) -> str:
        return "[" + ",".join(str(i) for i in self.items) + "]"


@dataclass(frozen=True)
class Tuple(Value):
    items: tuple = field(default=())

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    def type_of(self, ctx: ScriptContext) -> Type:
        return Type.tuple_of(item.type_of(ctx) for item in self.items)

    def unresolved_ids(self) -> set:
        return _union_ids(self.items)

    def __str__(self) -> str:
        return "(" + ",".join(str(i) for i in self.items) + ")"


class NativeObject(Value):
    """A host object embedded in scripts.

    Capabilities are exposed through the ``as_*`` methods, each returning an
    object implementing the matching protocol or ``None``. Equality and
    hashing go through :meth:`gen_hash`.
    """

    def as_evaluatable(self) -> Optional[Evaluatable]:
        return None

    def as_accessible(self) -> Optional[Accessible]:
        return None

    def as_indexable(self) -> Optional[Indexable]:
        return None

    def as_callable(self) -> Optional[Callable]:
        return None

    def gen_hash(self) -> int:
        return hash(type(self).__qualname__)

    def type_of(self, ctx: ScriptContext) -> Type:
        return Type.native(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NativeObject):
            return NotImplemented
        return self.gen_hash() == other.gen_hash()

    def __hash__(self) -> int:
        return self.gen_hash()

    def __str__(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class Call(Value):
    """Application of a callable to unevaluated arguments."""

    func: Value
    args: tuple = field(default=())

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))

    @classmethod
    def from_items(cls, items: Sequence[Value]) -> "Call":
        """Build a call from ``[func, *args]``."""
        if not items:
            raise ScriptError("call requires a function")
        return cls(items[0], tuple(items[1:]))

    def resolve_func(self, ctx: ScriptContext) -> NativeObject:
        func = self.func.value_of(ctx) if isinstance(self.func, Identifier) else self.func
        if isinstance(func, NativeObject):
            if func.as_callable() is not None:
                return func
            raise ScriptError("NativeObject does not implement Callable")
        raise ScriptError(f"func does not implement Callable: {func}")

    def signature(self, ctx: ScriptContext) -> Type:
        return self.resolve_func(ctx).as_callable().signature(ctx, self.args)

    def call(self, ctx: ScriptContext) -> Value:
        return self.resolve_func(ctx).as_callable().call(ctx, self.args)

    def type_of(self, ctx: ScriptContext) -> Type:
        return self.signature(ctx)

    def value_of(self, ctx: ScriptContext) -> Value:
        return self.call(ctx)

    def unresolved_ids(self) -> set:
        if self.func.is_identifier():
            return {self.func}
        if isinstance(self.func, NativeObject):
            callable_ = self.func.as_callable()
            if callable_ is not None:
                return callable_.unresolved_ids(self.args)
        return set()

    def __str__(self) -> str:
        return f"{self.func}(" + ",".join(str(a) for a in self.args) + ")"


def to_value(obj: _Any) -> Value:
    """Convert a plain Python object into a script value."""
    if isinstance(obj, Value):
        return obj
    if isinstance(obj, bool):
        return Boolean(obj)
    if isinstance(obj, int):
        return Integer(obj)
    if isinstance(obj, str):
        return String(obj)
    if isinstance(obj, list):
        return Array(tuple(to_value(x) for x in obj))
    if isinstance(obj, tuple):
        return Tuple(tuple(to_value(x) for x in obj))
    raise TypeError(f"cannot convert {type(obj).__name__} into a script value")