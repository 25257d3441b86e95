"""Config sources — read ``.properties``, YAML and TOML into a property store.

Nested tables are flattened into dotted keys and written in sorted key
order, so a later source overrides an earlier one key by key. Lists stay
lists; a list of tables becomes a sequence of mappings, which is what the
binder expects for ``list[Struct]`` fields.
"""

from __future__ import annotations

import logging
import re
import tomllib
from collections.abc import Iterable
from io import StringIO
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from propbind.domain.errors import SourceError
from propbind.domain.properties import Properties
from propbind.domain.values import Mapping, flatten, to_python, to_value

logger = logging.getLogger(__name__)

# File suffix (without dot) -> config type.
CONFIG_TYPES: dict[str, str] = {
    "properties": "properties",
    "props": "properties",
    "yaml": "yaml",
    "yml": "yaml",
    "toml": "toml",
}


def _new_yaml() -> YAML:
    """Fresh safe YAML loader per call (ruamel's YAML object is stateful)."""
    return YAML(typ="safe", pure=True)


# ---------------------------------------------------------------------------
# Parsers: text -> nested plain data
# ---------------------------------------------------------------------------

_CONTINUATION = re.compile(r"(?<!\\)(\\\\)*\\$")
_KEY_END = re.compile(r"(?<!\\)(?:\s*[=:]\s*|\s+)")
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def _unescape(text: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch != "\\" or i + 1 >= len(text):
            out.append(ch)
            i += 1
            continue
        nxt = text[i + 1]
        if nxt == "u" and i + 6 <= len(text):
            try:
                out.append(chr(int(text[i + 2 : i + 6], 16)))
            except ValueError as exc:
                msg = f"Invalid unicode escape in {text!r}"
                raise SourceError(msg) from exc
            i += 6
            continue
        out.append(_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)


def parse_properties_text(text: str) -> dict[str, str]:
    """Parse Java-style ``.properties`` text into a flat dict.

    Supports ``#``/``!`` comments, ``=``, ``:`` or whitespace separators,
    backslash line continuations and ``\\uXXXX`` escapes.
    """
    result: dict[str, str] = {}
    logical = ""
    for raw_line in text.splitlines():
        line = raw_line.lstrip()
        if not logical and (not line or line[0] in "#!"):
            continue
        if _CONTINUATION.search(line):
            logical += line[:-1]
            continue
        logical += line
        match = _KEY_END.search(logical)
        if match is None:
            key, val = logical, ""
        else:
            key, val = logical[: match.start()], logical[match.end() :]
        result[_unescape(key)] = _unescape(val)
        logical = ""
    if logical:
        result[_unescape(logical)] = ""
    return result


def _parse(text: str, config_type: str) -> dict[str, Any]:
    if config_type == "properties":
        return parse_properties_text(text)
    if config_type == "toml":
        try:
            return tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            msg = f"Invalid TOML: {exc}"
            raise SourceError(msg) from exc
    if config_type == "yaml":
        try:
            data = _new_yaml().load(StringIO(text))
        except YAMLError as exc:
            msg = f"Invalid YAML: {exc}"
            raise SourceError(msg) from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            msg = "YAML document must be a mapping at the top level"
            raise SourceError(msg)
        return data
    msg = f"Unsupported config type: {config_type!r}"
    raise SourceError(msg)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def populate(properties: Properties, data: dict[str, Any]) -> Properties:
    """Flatten *data* and write it into *properties* in sorted key order."""
    value = to_value(data)
    assert isinstance(value, Mapping)
    flat = flatten(value)
    for key in sorted(flat, key=str.lower):
        properties.set(key, flat[key])
        logger.debug("%s=%s", key.lower(), to_python(flat[key]))
    return properties


def read_properties(
    text: str,
    config_type: str,
    properties: Properties | None = None,
) -> Properties:
    """Parse *text* of the given *config_type* into *properties*."""
    logger.debug("Loading properties from text, type %s", config_type)
    kind = CONFIG_TYPES.get(config_type.lower().lstrip("."))
    if kind is None:
        msg = f"Unsupported config type: {config_type!r}"
        raise SourceError(msg)
    target = properties if properties is not None else Properties()
    return populate(target, _parse(text, kind))


def load_properties(path: Path, properties: Properties | None = None) -> Properties:
    """Load the file at *path*; its suffix selects the format."""
    logger.debug("Loading properties from file %s", path)
    if not path.is_file():
        msg = f"Config source not found: {path}"
        raise SourceError(msg)
    config_type = path.suffix.lstrip(".")
    if config_type.lower() not in CONFIG_TYPES:
        msg = f"Unsupported config file type: {path.name}"
        raise SourceError(msg)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read {path}: {exc}"
        raise SourceError(msg) from exc
    try:
        return read_properties(text, config_type, properties)
    except SourceError as exc:
        msg = f"{path}: {exc}"
        raise SourceError(msg) from exc


def load_sources(
    inline: dict[str, Any] | None = None,
    paths: Iterable[Path] = (),
) -> Properties:
    """Build one store from inline properties followed by *paths* in order."""
    properties = Properties()
    if inline:
        logger.debug("Loading %d inline properties", len(inline))
        populate(properties, inline)
    for path in paths:
        load_properties(path, properties)
    return properties
