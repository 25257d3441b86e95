"""Tests for config source parsing and loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from propbind.domain.errors import SourceError
from propbind.domain.properties import Properties
from propbind.domain.values import Mapping, Scalar, Sequence
from propbind.infrastructure.sources import (
    load_properties,
    load_sources,
    parse_properties_text,
    read_properties,
)


class TestParsePropertiesText:
    def test_separators(self) -> None:
        text = "a=1\nb: 2\nc 3\nd   =   4\n"
        assert parse_properties_text(text) == {"a": "1", "b": "2", "c": "3", "d": "4"}

    def test_comments_and_blank_lines(self) -> None:
        text = "# comment\n! also comment\n\n  key = value\n"
        assert parse_properties_text(text) == {"key": "value"}

    def test_continuation(self) -> None:
        text = "list = a, \\\n    b, \\\n    c\n"
        assert parse_properties_text(text) == {"list": "a, b, c"}

    def test_escaped_backslash_is_not_continuation(self) -> None:
        text = "path = C:\\\\\nnext = 1\n"
        assert parse_properties_text(text) == {"path": "C:\\", "next": "1"}

    def test_escapes(self) -> None:
        text = "greeting = hi\\tthere\\u0021\nkey\\ with\\ spaces = v\n"
        assert parse_properties_text(text) == {"greeting": "hi\tthere!", "key with spaces": "v"}

    def test_key_without_value(self) -> None:
        assert parse_properties_text("flag\n") == {"flag": ""}

    def test_value_keeps_separators(self) -> None:
        assert parse_properties_text("url = http://h:80/x=1\n") == {"url": "http://h:80/x=1"}

    def test_bad_unicode_escape(self) -> None:
        with pytest.raises(SourceError):
            parse_properties_text("k = \\uZZZZ\n")


class TestReadProperties:
    def test_properties_format(self) -> None:
        props = read_properties("Server.Port = 80\nitems[0].name = a\n", "properties")
        assert props.get("server.port") == Scalar("80")
        assert props.get_indexed("items") == Sequence((Mapping({"name": Scalar("a")}),))

    def test_yaml_format(self) -> None:
        text = "server:\n  port: 80\n  debug: true\nitems:\n  - name: a\n  - name: b\nempty:\n"
        props = read_properties(text, "yaml")
        assert props.get("server.port") == Scalar("80")
        assert props.get("server.debug") == Scalar("true")
        assert props.get("empty") == Scalar("")
        items = props.get("items")
        assert isinstance(items, Sequence)
        assert len(items) == 2

    def test_toml_format(self) -> None:
        text = '[server]\nport = 80\n\n[[items]]\nname = "a"\n'
        props = read_properties(text, ".TOML")
        assert props.get("server.port") == Scalar("80")
        assert props.get("items") == Sequence((Mapping({"name": Scalar("a")}),))

    def test_into_existing_store(self) -> None:
        props = Properties({"a": "1", "b": "1"})
        read_properties("b = 2\n", "properties", props)
        assert props.get("a") == Scalar("1")
        assert props.get("b") == Scalar("2")

    def test_empty_yaml(self) -> None:
        assert len(read_properties("", "yml")) == 0

    @pytest.mark.parametrize(
        ("text", "kind"),
        [
            ("a = [", "toml"),
            ("a: [", "yaml"),
            ("- just\n- a list\n", "yaml"),
        ],
    )
    def test_invalid_documents(self, text: str, kind: str) -> None:
        with pytest.raises(SourceError):
            read_properties(text, kind)

    def test_unsupported_type(self) -> None:
        with pytest.raises(SourceError, match="Unsupported config type"):
            read_properties("{}", "json")


class TestLoadProperties:
    def test_suffix_selects_format(self, tmp_path: Path) -> None:
        path = tmp_path / "app.yaml"
        path.write_text("db:\n  url: sqlite://\n", encoding="utf-8")
        assert load_properties(path).get("db.url") == Scalar("sqlite://")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SourceError, match="not found"):
            load_properties(tmp_path / "nope.toml")

    def test_unsupported_suffix(self, tmp_path: Path) -> None:
        path = tmp_path / "app.json"
        path.write_text("{}", encoding="utf-8")
        with pytest.raises(SourceError, match="Unsupported config file type"):
            load_properties(path)

    def test_parse_error_names_file(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text("a = [", encoding="utf-8")
        with pytest.raises(SourceError, match="bad.toml"):
            load_properties(path)


class TestLoadSources:
    def test_later_sources_override(self, tmp_path: Path) -> None:
        first = tmp_path / "a.properties"
        first.write_text("port = 1\nhost = a\n", encoding="utf-8")
        second = tmp_path / "b.toml"
        second.write_text("port = 2\n", encoding="utf-8")
        props = load_sources({"port": 0, "name": "inline"}, [first, second])
        assert props.get("port") == Scalar("2")
        assert props.get("host") == Scalar("a")
        assert props.get("name") == Scalar("inline")

    def test_inline_only(self) -> None:
        props = load_sources({"server": {"port": 80}})
        assert props.get("server.port") == Scalar("80")

    def test_nothing(self) -> None:
        assert len(load_sources()) == 0
