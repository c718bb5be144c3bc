import pytest

from milu.script import (
    Array,
    Boolean,
    Call,
    Callable,
    Evaluatable,
    Identifier,
    Integer,
    MappingAccessor,
    NativeObject,
    ScriptContext,
    ScriptError,
    SequenceIndexer,
    String,
    Tuple,
    Type,
    TypeKind,
    to_value,
)


class AddFn(NativeObject, Callable):
    def as_callable(self):
        return self

    def signature(self, ctx, args):
        return Type.integer()

    def call(self, ctx, args):
        return Integer(sum(a.real_value_of(ctx).value for a in args))


class Plain(NativeObject):
    pass


class _Eval(Evaluatable):
    def __init__(self, text):
        self.text = text

    def type_of(self, ctx):
        return Type.string()

    def value_of(self, ctx):
        return String(self.text)


class Wrapped(NativeObject):
    def __init__(self, text):
        self.text = text

    def as_evaluatable(self):
        return _Eval(self.text)

    def gen_hash(self):
        return hash(("Wrapped", self.text))


def test_any_type_matches_everything():
    assert Type.any() == Type.integer()
    assert Type.string() == Type.any()
    assert Type.array_of(Type.any()) == Type.array_of(Type.boolean())
    assert Type.integer() != Type.string()


def test_composite_type_equality():
    assert Type.array_of(Type.integer()) != Type.array_of(Type.string())
    assert Type.tuple_of([Type.integer()]) != Type.tuple_of([Type.integer(), Type.integer()])
    assert Type.tuple_of([Type.integer(), Type.string()]) == Type.tuple_of(
        [Type.integer(), Type.any()]
    )


def test_type_display():
    assert str(Type.array_of(Type.integer())) == "[integer]"
    assert str(Type.tuple_of([Type.integer(), Type.string()])) == "(integer,string)"
    assert str(Type.native(Plain())).startswith("native@")


def test_context_chain_lookup():
    parent = ScriptContext()
    parent.set("a", Integer(1))
    child = ScriptContext(parent)
    child.set("b", Integer(2))
    assert child.lookup("a") == Integer(1)
    assert child.lookup("b") == Integer(2)
    with pytest.raises(ScriptError):
        parent.lookup("b")


def test_identifier_resolves_through_context():
    ctx = ScriptContext()
    ctx.set("x", String("hi"))
    assert Identifier("x").value_of(ctx) == String("hi")
    assert Identifier("x").type_of(ctx).kind is TypeKind.STRING
    with pytest.raises(ScriptError):
        Identifier("y").value_of(ctx)


def test_array_types():
    ctx = ScriptContext()
    assert Array((Integer(1), Integer(2))).type_of(ctx) == Type.array_of(Type.integer())
    assert Array(()).type_of(ctx).element.kind is TypeKind.ANY
    with pytest.raises(ScriptError):
        Array((Integer(1), String("true"), Boolean(False))).type_of(ctx)


def test_tuple_type_keeps_member_order():
    t = Tuple((Integer(1), String("2"), Boolean(False))).type_of(ScriptContext())
    assert [m.kind for m in t.members] == [TypeKind.INTEGER, TypeKind.STRING, TypeKind.BOOLEAN]


def test_unresolved_ids_collects_identifiers():
    value = Array((Identifier("a"), Tuple((Identifier("b"), Integer(1)))))
    assert value.unresolved_ids() == {Identifier("a"), Identifier("b")}
    assert Integer(3).unresolved_ids() == set()


def test_call_through_identifier():
    ctx = ScriptContext()
    ctx.set("add", AddFn())
    call = Call(Identifier("add"), (Integer(1), Integer(2)))
    assert call.value_of(ctx) == Integer(3)
    assert call.type_of(ctx).kind is TypeKind.INTEGER


def test_call_from_items_splits_func():
    call = Call.from_items([AddFn(), Integer(4), Integer(5)])
    assert call.args == (Integer(4), Integer(5))
    assert call.value_of(ScriptContext()) == Integer(9)


def test_call_of_non_callable_raises():
    ctx = ScriptContext()
    ctx.set("x", Integer(1))
    with pytest.raises(ScriptError):
        Call(Identifier("x"), ()).value_of(ctx)
    with pytest.raises(ScriptError):
        Call(Plain(), ()).resolve_func(ctx)


def test_call_display():
    assert str(Call(AddFn(), (Integer(1), Identifier("x")))) == "AddFn(1,<x>)"


def test_real_value_looks_through_native():
    ctx = ScriptContext()
    ctx.set("w", Wrapped("xx"))
    assert Identifier("w").real_value_of(ctx) == String("xx")
    assert Identifier("w").real_type_of(ctx).kind is TypeKind.STRING
    assert Identifier("w").value_of(ctx) == Wrapped("xx")


def test_native_equality_uses_hash():
    ctx = ScriptContext()
    ctx.set("a", Wrapped("a"))
    ctx.set("p", Plain())
    assert ctx.lookup("a") == Wrapped("a")
    assert ctx.lookup("a") != Wrapped("b")
    assert ctx.lookup("p") == Plain()
    assert Plain().gen_hash() == Plain().gen_hash()
    assert Type.native(Wrapped("a")) == Type.native(Wrapped("a"))
    assert Type.native(Wrapped("a")) != Type.native(Wrapped("b"))


def test_sequence_indexer():
    seq = SequenceIndexer([Integer(1), Integer(2), Integer(3)])
    assert seq.length() == 3
    assert seq.get_item(0) == Integer(1)
    assert seq.get_item(-1) == Integer(3)
    assert seq.type_of_member(ScriptContext()).kind is TypeKind.INTEGER
    with pytest.raises(ScriptError):
        seq.get_item(3)
    with pytest.raises(ScriptError):
        seq.get_item(-4)


def test_mapping_accessor():
    acc = MappingAccessor({"test": Integer(1)})
    assert acc.names() == ["test"]
    assert acc.get_attr("test") == Integer(1)
    assert acc.type_of_name("test", ScriptContext()).kind is TypeKind.INTEGER
    with pytest.raises(ScriptError):
        acc.get_attr("missing")


def test_to_value_conversions():
    assert to_value(True) == Boolean(True)
    assert to_value(1) == Integer(1)
    assert to_value(True) != Integer(1)
    assert to_value(["a", 2]) == Array((String("a"), Integer(2)))
    assert to_value((1, "2")) == Tuple((Integer(1), String("2")))
    with pytest.raises(TypeError):
        to_value(1.5)


def test_value_display():
    assert str(String('a"b')) == '"a\\"b"'
    assert str(Boolean(False)) == "false"
    assert str(Array((Integer(1), Identifier("x")))) == "[1,<x>]"
    assert str(Tuple((Integer(1), Integer(2)))) == "(1,2)"