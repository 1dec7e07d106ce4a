"""Script values — the data exchanged between commands and scripts."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Literal

import yaml

from foreman.errors import TranscriptRenderError

logger = logging.getLogger(__name__)


@dataclass
class Nil:
    type: Literal["nil"] = "nil"


@dataclass
class Bool:
    value: bool = False
    type: Literal["bool"] = "bool"


@dataclass
class Number:
    value: int | float = 0
    type: Literal["number"] = "number"


@dataclass
class Text:
    value: str = ""
    type: Literal["text"] = "text"


@dataclass
class List:
    items: list[ScriptValue] = field(default_factory=list)
    type: Literal["list"] = "list"


@dataclass
class Record:
    fields: dict[str, ScriptValue] = field(default_factory=dict)
    type: Literal["record"] = "record"


@dataclass
class Error:
    """A failure carried as a value. Scripts only ever see its message."""

    message: str = ""
    type: Literal["error"] = "error"


ScriptValue = Nil | Bool | Number | Text | List | Record | Error


def from_python(obj: Any) -> ScriptValue:
    """Convert JSON-like Python data into a script value."""
    if obj is None:
        return Nil()
    if isinstance(obj, (Nil, Bool, Number, Text, List, Record, Error)):
        return obj
    # bool is a subclass of int
    if isinstance(obj, bool):
        return Bool(obj)
    if isinstance(obj, (int, float)):
        return Number(obj)
    if isinstance(obj, str):
        return Text(obj)
    if isinstance(obj, (list, tuple)):
        return List([from_python(item) for item in obj])
    if isinstance(obj, dict):
        return Record({str(k): from_python(v) for k, v in obj.items()})
    if isinstance(obj, BaseException):
        return Error(str(obj))
    return Text(str(obj))


def to_python(value: ScriptValue) -> Any:
    """Convert a script value into JSON-like Python data."""
    if isinstance(value, Nil):
        return None
    if isinstance(value, (Bool, Number, Text)):
        return value.value
    if isinstance(value, List):
        return [to_python(item) for item in value.items]
    if isinstance(value, Record):
        return {k: to_python(v) for k, v in value.fields.items()}
    if isinstance(value, Error):
        return {"error": value.message}
    raise TypeError(f"Not a script value: {value!r}")


def render_value(value: ScriptValue) -> str:
    """Render a value as YAML for the command transcript."""
    try:
        text = yaml.safe_dump(
            to_python(value),
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
    except (TypeError, yaml.YAMLError) as e:
        raise TranscriptRenderError(f"Could not render {value!r} as YAML: {e}") from e

    # Scalars get an explicit document end marker; drop it.
    if text.endswith("\n...\n"):
        text = text[: -len("...\n")]
    return text.rstrip("\n")


def render_literal(value: ScriptValue) -> str:
    """Render a value the way it would be written as a call argument."""
    if isinstance(value, Error):
        return json.dumps(value.message, ensure_ascii=False)
    try:
        return json.dumps(to_python(value), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise TranscriptRenderError(f"Could not render {value!r}: {e}") from e


def render_call(name: str, args: list[ScriptValue]) -> str:
    """Render a command call expression, e.g. ``write_note("hello")``."""
    return f"{name}({', '.join(render_literal(a) for a in args)})"


def as_text(value: ScriptValue) -> str:
    """Best-effort plain text for a value (used by commands reading arguments)."""
    if isinstance(value, Text):
        return value.value
    if isinstance(value, Error):
        return value.message
    if isinstance(value, Nil):
        return ""
    if isinstance(value, Bool):
        return "true" if value.value else "false"
    if isinstance(value, Number):
        return str(value.value)
    return render_literal(value)
