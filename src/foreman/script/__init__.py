"""Script values and the Lua scripting bridge."""

from foreman.script.value import (
    Bool,
    Error,
    List,
    Nil,
    Number,
    Record,
    ScriptValue,
    Text,
    as_text,
    from_python,
    render_call,
    render_value,
    to_python,
)

__all__ = [
    "Bool",
    "Error",
    "List",
    "Nil",
    "Number",
    "Record",
    "ScriptValue",
    "Text",
    "as_text",
    "from_python",
    "render_call",
    "render_value",
    "to_python",
]
