"""Tests for the recursive value binder."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import pytest
from pydantic import BaseModel, ConfigDict, Field

from propbind.domain.binding import Binder, bind_into
from propbind.domain.converters import ConverterRegistry, default_registry
from propbind.domain.errors import (
    ConversionFailure,
    InvalidBindTarget,
    PropertyNotConfigured,
    ShapeMismatch,
    StructDefaultNotAllowed,
    TagSyntaxError,
    UnsupportedDestinationType,
    UnsupportedElementType,
)
from propbind.domain.properties import Properties
from propbind.domain.shapes import Ref
from propbind.domain.tags import embedded, value

# ---------------------------------------------------------------------------
# Destination types
# ---------------------------------------------------------------------------


@dataclass
class Server:
    host: str = value("${host:=localhost}")
    port: int = value("${port:=8080}")
    debug: bool = value("${debug:=false}")
    ratio: float = value("${ratio:=0.5}")
    timeout: timedelta = value("${timeout:=30s}", default=timedelta(0))
    tags: list[str] = value("${tags:=}", default_factory=list)


@dataclass
class Leaf:
    v: int = value("${v}", default=0)


@dataclass
class Middle:
    leaf: Leaf = field(default_factory=Leaf)


@dataclass
class Root:
    middle: Middle = field(default_factory=Middle)


@dataclass
class Item:
    name: str = value("${name}", default="")
    age: int = value("${age}", default=0)


@dataclass
class Pair:
    x: int = value("${x}", default=0)
    y: int = value("${y}", default=0)


@dataclass
class Point:
    x: int = value("${x}", default=0)
    y: int = value("${y}", default=0)


@dataclass
class Shape:
    origin: Point = value("${origin}", default_factory=Point)


@dataclass
class Defaulted:
    origin: Point = value("${origin:=1,2}", default_factory=Point)


@dataclass
class Whole:
    everything: str = value("${}", default="")


@dataclass
class Collections:
    names: list[str] = value("${names}", default_factory=list)
    counts: list[int] = value("${counts}", default_factory=list)
    flags: list[bool] = value("${flags}", default_factory=list)
    waits: list[timedelta] = value("${waits}", default_factory=list)
    labels: dict[str, str] = value("${labels}", default_factory=dict)
    limits: dict[str, timedelta] = value("${limits}", default_factory=dict)


@dataclass
class Ordered:
    first: int = value("${first}", default=0)
    second: int = value("${second}", default=0)


@dataclass
class WithPrivate:
    public: str = value("${public}", default="")
    _hidden: str = value("${hidden}", default="")
    _untagged: str = "keep"


@dataclass
class WithOptional:
    port: int | None = value("${port}", default=None)


@dataclass
class WithRef:
    port: Ref[int] = value("${port}", default_factory=lambda: Ref(int))


@dataclass
class BadTag:
    port: int = value("port", default=0)


@dataclass
class WithSet:
    names: set[str] = value("${names}", default_factory=set)


@dataclass(frozen=True)
class Frozen:
    port: int = value("${port}", default=0)


@dataclass
class Base:
    name: str = value("${name}", default="")


@dataclass
class Derived(Base):
    level: int = value("${level}", default=0)


@dataclass
class WithEmbedded:
    base: Base | None = embedded(default=None)
    level: int = value("${level}", default=0)


@dataclass
class WithLooseOptional:
    base: Base | None = None
    level: int = value("${level}", default=0)


@dataclass
class BadEmbedded:
    count: int = embedded(default=0)


class EmbeddedModel(BaseModel):
    base: Base = Field(default_factory=Base, json_schema_extra={"embedded": True})
    level: int = Field(default=0, json_schema_extra={"value": "${level}"})


@dataclass
class Stamped:
    at: datetime = value("${at}", default=datetime(1970, 1, 1))


class DbSettings(BaseModel):
    url: str = Field(default="", json_schema_extra={"value": "${url}"})
    pool: int = Field(default=1, json_schema_extra={"value": "${pool:=5}"})
    replicas: list[Item] = Field(
        default_factory=list, json_schema_extra={"value": "${replicas:=}"}
    )
    note: str = "untouched"


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str = Field(default="", json_schema_extra={"value": "${url}"})


@dataclass
class App:
    server: Server = value("${server}", default_factory=Server)
    db: DbSettings = value("${db}", default_factory=DbSettings)


def _parse_point(text: str) -> Point:
    x, y = text.split(",")
    return Point(x=int(x), y=int(y))


class _SpyProperties(Properties):
    """Records every lookup made against the store."""

    def __init__(self, entries: dict[str, Any] | None = None) -> None:
        super().__init__(entries)
        self.lookups: list[str] = []

    def get_default(self, key: str, fallback: Any = None) -> tuple[Any, bool]:
        self.lookups.append(key)
        return super().get_default(key, fallback)

    def get_prefix(self, prefix: str) -> dict[str, Any]:
        self.lookups.append(prefix)
        return super().get_prefix(prefix)


# ---------------------------------------------------------------------------
# Scalars and defaults
# ---------------------------------------------------------------------------


class TestScalars:
    def test_binds_typed_values(self) -> None:
        props = Properties(
            {
                "server.host": "example.org",
                "server.port": "9090",
                "server.debug": "true",
                "server.ratio": "0.25",
                "server.timeout": "1m",
                "server.tags": "a b",
            }
        )
        server = Server()
        bind_into(props, "server", server)
        assert server == Server(
            host="example.org",
            port=9090,
            debug=True,
            ratio=0.25,
            timeout=timedelta(minutes=1),
            tags=["a", "b"],
        )

    def test_defaults_apply_on_empty_store(self) -> None:
        server = Server()
        bind_into(Properties(), "server", server)
        assert server.host == "localhost"
        assert server.port == 8080
        assert server.debug is False
        assert server.ratio == 0.5
        assert server.timeout == timedelta(seconds=30)
        assert server.tags == []

    def test_default_converted_to_field_type(self) -> None:
        @dataclass
        class Answer:
            answer: int = value("${x.y:=42}", default=0)

        target = Answer()
        bind_into(Properties(), "", target)
        assert target.answer == 42

    def test_stored_value_wins_over_default(self) -> None:
        server = Server()
        bind_into(Properties({"server.port": "1"}), "server", server)
        assert server.port == 1

    def test_lookup_is_case_insensitive(self) -> None:
        server = Server()
        bind_into(Properties({"SERVER.Port": "7"}), "Server", server)
        assert server.port == 7

    def test_missing_property_without_default(self) -> None:
        with pytest.raises(PropertyNotConfigured) as exc_info:
            bind_into(Properties(), "", Item())
        err = exc_info.value
        assert err.property_name == "name"
        assert err.field_path == "Item.name"
        assert 'property "name" not configured' in err.message

    def test_bad_cast_is_conversion_failure(self) -> None:
        with pytest.raises(ConversionFailure) as exc_info:
            bind_into(Properties({"server.port": "eighty"}), "server", Server())
        assert exc_info.value.property_name == "server.port"
        assert exc_info.value.field_path == "Server.port"

    def test_converter_failure_is_conversion_failure(self) -> None:
        with pytest.raises(ConversionFailure):
            bind_into(Properties({"server.timeout": "soon"}), "server", Server())

    def test_empty_name_uses_prefix_verbatim(self) -> None:
        whole = Whole()
        bind_into(Properties({"a.b": "yes"}), "a.b", whole)
        assert whole.everything == "yes"

    def test_timestamp_converter(self) -> None:
        stamped = Stamped()
        bind_into(Properties({"at": "2024-05-01 10:00:00"}), "", stamped)
        assert stamped.at == datetime(2024, 5, 1, 10)


# ---------------------------------------------------------------------------
# Struct recursion
# ---------------------------------------------------------------------------


class TestStructs:
    def test_untagged_nested_struct_inherits_prefix(self) -> None:
        props = _SpyProperties({"a.b.v": "5"})
        root = Root()
        bind_into(props, "a.b", root)
        assert root.middle.leaf.v == 5
        assert "a.b.v" in props.lookups

    def test_tagged_nested_struct_extends_prefix(self) -> None:
        shape = Shape()
        bind_into(Properties({"shape.origin.x": "3", "shape.origin.y": "4"}), "shape", shape)
        assert shape.origin == Point(3, 4)

    def test_nested_full_name_in_errors(self) -> None:
        with pytest.raises(ConversionFailure) as exc_info:
            bind_into(Properties({"app.server.port": "x"}), "app", App())
        assert exc_info.value.property_name == "app.server.port"
        assert exc_info.value.field_path == "App.server.port"

    def test_struct_default_not_allowed(self) -> None:
        with pytest.raises(StructDefaultNotAllowed) as exc_info:
            bind_into(Properties(), "", Defaulted())
        assert exc_info.value.field_path == "Defaulted.origin"

    def test_inherited_fields_bound_in_order(self) -> None:
        derived = Derived()
        bind_into(Properties({"name": "n", "level": "2"}), "", derived)
        assert derived == Derived(name="n", level=2)

    def test_embedded_optional_struct_created(self) -> None:
        target = WithEmbedded()
        bind_into(Properties({"srv.name": "n", "srv.level": "2"}), "srv", target)
        assert target == WithEmbedded(base=Base(name="n"), level=2)

    def test_unmarked_optional_struct_skipped(self) -> None:
        target = WithLooseOptional()
        bind_into(Properties({"srv.name": "n", "srv.level": "2"}), "srv", target)
        assert target.base is None
        assert target.level == 2

    def test_embedded_requires_struct(self) -> None:
        with pytest.raises(InvalidBindTarget) as exc_info:
            bind_into(Properties(), "", BadEmbedded())
        assert exc_info.value.field_path == "BadEmbedded.count"

    def test_embedded_pydantic_field(self) -> None:
        model = EmbeddedModel()
        bind_into(Properties({"name": "n", "level": "3"}), "", model)
        assert model.base == Base(name="n")
        assert model.level == 3

    def test_pydantic_model(self) -> None:
        props = Properties.from_mapping(
            {
                "app": {
                    "db": {"url": "sqlite://", "replicas": [{"name": "r1", "age": 1}]},
                    "server": {"port": 1},
                }
            }
        )
        app = App()
        bind_into(props, "app", app)
        assert app.db.url == "sqlite://"
        assert app.db.pool == 5
        assert app.db.replicas == [Item(name="r1", age=1)]
        assert app.db.note == "untouched"
        assert app.server.port == 1

    def test_pydantic_model_as_top_level_target(self) -> None:
        db = DbSettings()
        bind_into(Properties({"DB.URL": "x"}), "db", db)
        assert db.url == "x"
        assert db.pool == 5

    def test_frozen_dataclass_is_invalid_target(self) -> None:
        with pytest.raises(InvalidBindTarget) as exc_info:
            bind_into(Properties({"port": "1"}), "", Frozen())
        assert "read-only" in exc_info.value.message

    def test_frozen_model_is_invalid_target(self) -> None:
        with pytest.raises(InvalidBindTarget):
            bind_into(Properties({"url": "x"}), "", FrozenModel())


# ---------------------------------------------------------------------------
# Converters
# ---------------------------------------------------------------------------


class TestConverterPriority:
    def test_converter_wins_over_fields(self) -> None:
        registry = default_registry()
        registry.register(Point, _parse_point)
        props = _SpyProperties({"shape.origin": "7,8", "shape.origin.x": "100"})
        shape = Shape()
        bind_into(props, "shape", shape, converters=registry)
        assert shape.origin == Point(7, 8)
        assert "shape.origin.x" not in props.lookups

    def test_converter_on_top_level_struct(self) -> None:
        registry = ConverterRegistry({Point: _parse_point})
        point = Point()
        bind_into(Properties({"p": "1,2"}), "p", point, converters=registry)
        assert point == Point(1, 2)

    def test_converter_into_ref(self) -> None:
        registry = ConverterRegistry({Point: _parse_point})
        ref: Ref[Point] = Ref(Point)
        Binder(registry).bind(Properties({"p": "5,6"}), "p", ref)
        assert ref.value == Point(5, 6)

    def test_converter_rejects_table_value(self) -> None:
        seen: list[str] = []

        def capture(text: str) -> Point:
            seen.append(text)
            return Point()

        registry = ConverterRegistry({Point: capture})
        with pytest.raises(ShapeMismatch):
            bind_into(Properties({"p.x": "1"}), "p", Point(), converters=registry)
        assert seen == []

    def test_duration_overflow_is_conversion_failure(self) -> None:
        ref: Ref[timedelta] = Ref(timedelta)
        with pytest.raises(ConversionFailure) as exc_info:
            bind_into(Properties({"t": "999999999999h"}), "t", ref)
        assert exc_info.value.property_name == "t"
        assert ref.value is None

    def test_converter_overflow_is_conversion_failure(self) -> None:
        def explode(text: str) -> Point:
            raise OverflowError(text)

        registry = ConverterRegistry({Point: explode})
        with pytest.raises(ConversionFailure):
            bind_into(Properties({"p": "1,2"}), "p", Point(), converters=registry)


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


class TestSequences:
    def test_list_of_structs_from_flat_keys(self) -> None:
        props = Properties(
            {
                "items[1].name": "bar",
                "items[0].name": "foo",
                "items[0].age": "3",
                "items[1].age": "4",
            }
        )
        ref: Ref[list[Item]] = Ref(list[Item])
        bind_into(props, "items", ref)
        assert ref.value == [Item("foo", 3), Item("bar", 4)]

    def test_list_of_structs_from_nested_data(self) -> None:
        props = Properties.from_mapping(
            {"items": [{"name": "foo", "age": 3}, {"name": "bar", "age": 4}]}
        )
        ref: Ref[list[Item]] = Ref(list[Item])
        bind_into(props, "items", ref)
        assert ref.value == [Item("foo", 3), Item("bar", 4)]

    def test_list_element_errors_name_index(self) -> None:
        props = Properties.from_mapping({"items": [{"name": "a", "age": "x"}]})
        with pytest.raises(ConversionFailure) as exc_info:
            bind_into(props, "items", Ref(list[Item]))
        assert exc_info.value.property_name == "items[0].age"
        assert exc_info.value.field_path == "Item[0].age"

    def test_list_of_structs_needs_tables(self) -> None:
        with pytest.raises(ShapeMismatch):
            bind_into(Properties({"items": "plain"}), "items", Ref(list[Item]))
        with pytest.raises(ShapeMismatch):
            bind_into(Properties({"items": ["a"]}), "items", Ref(list[Item]))

    def test_scalar_lists(self) -> None:
        props = Properties(
            {
                "names": ["a", "b"],
                "counts": "1 2 3",
                "flags": ["true", "0"],
                "waits": ["1s", "2m"],
                "labels.env": "prod",
                "labels.Team": "core",
                "limits": {"read": "1s"},
            }
        )
        coll = Collections()
        bind_into(props, "", coll)
        assert coll.names == ["a", "b"]
        assert coll.counts == [1, 2, 3]
        assert coll.flags == [True, False]
        assert coll.waits == [timedelta(seconds=1), timedelta(minutes=2)]
        assert coll.labels == {"env": "prod", "team": "core"}
        assert coll.limits == {"read": timedelta(seconds=1)}

    def test_scalar_list_from_indexed_keys(self) -> None:
        ref: Ref[list[int]] = Ref(list[int])
        bind_into(Properties({"ports[0]": "80", "ports[1]": "443"}), "ports", ref)
        assert ref.value == [80, 443]

    def test_indexed_keys_stop_at_gap(self) -> None:
        props = Properties(
            {
                "items[0].name": "a",
                "items[0].age": "1",
                "items[2].name": "c",
                "items[2].age": "3",
            }
        )
        ref: Ref[list[Item]] = Ref(list[Item])
        bind_into(props, "items", ref)
        assert ref.value == [Item("a", 1)]

    def test_indexed_value_and_table_conflict(self) -> None:
        props = Properties({"xs[0]": "a", "xs[0].name": "b", "xs[1]": "c"})
        with pytest.raises(ShapeMismatch) as exc_info:
            bind_into(props, "xs", Ref(list[str]))
        assert exc_info.value.property_name == "xs[0]"
        assert "set both as a value and as a table" in exc_info.value.message

    def test_float_list_unsupported(self) -> None:
        with pytest.raises(UnsupportedElementType):
            bind_into(Properties({"xs": ["1.5"]}), "xs", Ref(list[float]))

    def test_unsupported_element_checked_before_lookup(self) -> None:
        props = _SpyProperties()
        with pytest.raises(UnsupportedElementType):
            bind_into(props, "xs", Ref(list[bytes]))
        assert props.lookups == []


class TestMappings:
    def test_map_of_structs(self) -> None:
        props = Properties(
            {
                "settings.b.y": "4",
                "settings.a.x": "1",
                "settings.b.x": "3",
                "settings.a.y": "2",
            }
        )
        ref: Ref[dict[str, Pair]] = Ref(dict[str, Pair])
        bind_into(props, "settings", ref)
        assert ref.value == {"a": Pair(1, 2), "b": Pair(3, 4)}

    def test_map_of_structs_from_nested_data(self) -> None:
        props = Properties.from_mapping(
            {"settings": {"A": {"x": 1, "y": 2}, "b": {"x": 3, "y": 4}}}
        )
        ref: Ref[dict[str, Pair]] = Ref(dict[str, Pair])
        bind_into(props, "settings", ref)
        assert ref.value == {"a": Pair(1, 2), "b": Pair(3, 4)}

    def test_map_element_errors_name_key(self) -> None:
        with pytest.raises(ConversionFailure) as exc_info:
            bind_into(Properties({"settings.a.x": "no"}), "settings", Ref(dict[str, Pair]))
        assert exc_info.value.property_name == "settings.a.x"

    def test_map_of_structs_needs_tables(self) -> None:
        with pytest.raises(ShapeMismatch):
            bind_into(Properties({"settings.a": "1"}), "settings", Ref(dict[str, Pair]))

    @pytest.mark.parametrize("elem", [int, bool, float])
    def test_numeric_values_unsupported(self, elem: type) -> None:
        props = _SpyProperties({"m.a": "1"})
        with pytest.raises(UnsupportedElementType):
            bind_into(props, "m", Ref(dict[str, elem]))  # type: ignore[valid-type]
        assert props.lookups == []

    def test_non_str_keys_unsupported(self) -> None:
        with pytest.raises(UnsupportedDestinationType):
            bind_into(Properties({"m.1": "a"}), "m", Ref(dict[int, str]))

    def test_missing_map(self) -> None:
        with pytest.raises(PropertyNotConfigured):
            bind_into(Properties(), "m", Ref(dict[str, str]))


# ---------------------------------------------------------------------------
# Targets and field policy
# ---------------------------------------------------------------------------


class TestTargets:
    @pytest.mark.parametrize("target", [42, "text", [1], {"a": 1}, None, Server])
    def test_non_struct_target_rejected_before_lookup(self, target: object) -> None:
        props = _SpyProperties({"x": "1"})
        with pytest.raises(InvalidBindTarget):
            bind_into(props, "x", target)
        assert props.lookups == []

    def test_ref_to_scalar(self) -> None:
        ref: Ref[int] = Ref(int)
        bind_into(Properties({"x": "12"}), "x", ref)
        assert ref.value == 12

    def test_optional_field_rejected(self) -> None:
        with pytest.raises(InvalidBindTarget) as exc_info:
            bind_into(Properties({"port": "1"}), "", WithOptional())
        assert exc_info.value.field_path == "WithOptional.port"

    def test_ref_field_rejected(self) -> None:
        with pytest.raises(InvalidBindTarget):
            bind_into(Properties({"port": "1"}), "", WithRef())

    def test_optional_ref_rejected(self) -> None:
        with pytest.raises(InvalidBindTarget):
            bind_into(Properties({"port": "1"}), "port", Ref(int | None))

    def test_unsupported_destination(self) -> None:
        with pytest.raises(UnsupportedDestinationType):
            bind_into(Properties({"names": "a"}), "", WithSet())

    def test_bad_tag(self) -> None:
        with pytest.raises(TagSyntaxError) as exc_info:
            bind_into(Properties(), "", BadTag())
        assert exc_info.value.field_path == "BadTag.port"


class TestPrivateFields:
    def test_tagged_private_field_rejected_by_default(self) -> None:
        with pytest.raises(InvalidBindTarget):
            bind_into(Properties({"public": "p", "hidden": "h"}), "", WithPrivate())

    def test_allowed_when_permitted(self) -> None:
        target = WithPrivate()
        bind_into(Properties({"public": "p", "hidden": "h"}), "", target, True)
        assert target.public == "p"
        assert target._hidden == "h"
        assert target._untagged == "keep"

    def test_untagged_private_field_skipped(self) -> None:
        @dataclass
        class OnlyUntagged:
            _cache: str = "c"
            name: str = value("${name}", default="")

        target = OnlyUntagged()
        bind_into(Properties({"name": "n"}), "", target)
        assert target._cache == "c"
        assert target.name == "n"


class TestBindSemantics:
    def test_idempotent_across_fresh_targets(self) -> None:
        props = Properties.from_mapping(
            {"server": {"host": "h", "port": 1, "tags": ["x"]}, "db": {"url": "u"}}
        )
        first, second = App(), App()
        bind_into(props, "", first)
        bind_into(props, "", second)
        assert first == second

    def test_partial_mutation_on_failure(self) -> None:
        target = Ordered()
        with pytest.raises(ConversionFailure):
            bind_into(Properties({"first": "1", "second": "two"}), "", target)
        assert target.first == 1
        assert target.second == 0

    def test_binder_reusable(self) -> None:
        binder = Binder()
        a, b = Ref(int), Ref(int)
        binder.bind(Properties({"n": "1"}), "n", a)
        binder.bind(Properties({"n": "2"}), "n", b)
        assert (a.value, b.value) == (1, 2)

    def test_properties_bind_shortcut(self) -> None:
        server = Server()
        Properties({"srv.port": "3"}).bind("srv", server)
        assert server.port == 3
