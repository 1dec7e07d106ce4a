"""Scripting bridge — run model-authored Lua scripts against the registry.

A script may call any active command as a global function. Each call is
marshalled into script values, executed under the shared-context lease by
driving the command's coroutine to completion on the calling thread, and
its result marshalled back. The interpreter thread blocks for the duration
of every command call; calls run strictly in program order.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Coroutine, Iterable
from typing import Any, Callable, TypeVar

from lupa import LuaError, LuaRuntime, lua_type

from foreman.command.base import OutputChannel, SharedContext
from foreman.command.registry import CommandRegistry
from foreman.errors import ScriptError
from foreman.script.value import (
    Bool,
    Error,
    List,
    Nil,
    Number,
    Record,
    ScriptValue,
    Text,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Tables nested deeper than this are treated as unconvertible.
MAX_TABLE_DEPTH = 32

RECORD_MARKER_KEY = "__foreman_record"
RECORD_NIL_KEYS = "__foreman_nil_keys"
LIST_LENGTH_KEY = "__foreman_length"

# Strips host access from the runtime and resolves unknown globals through
# the command table. Commands are looked up by name at call time.
_BINDING = """
function(call, has_command)
    local clock, time, date = os.clock, os.time, os.date
    io, debug, package, require, dofile, loadfile, python = nil, nil, nil, nil, nil, nil, nil
    os = { clock = clock, time = time, date = date }
    setmetatable(_G, {
        __index = function(_, key)
            if has_command(key) then
                return function(...) return call(key, ...) end
            end
            return nil
        end,
    })
end
"""

_FENCE_RE = re.compile(r"```[\w+-]*[ \t]*\n(.*?)```", re.DOTALL)


def run_to_completion(factory: Callable[[], Coroutine[Any, Any, T]]) -> T:
    """Run an async operation to completion on the current thread.

    Uses a fresh event loop owned by this call. Must not be called from a
    thread that is already running an event loop.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        raise RuntimeError(
            "run_to_completion() called from a running event loop; "
            "use ScriptBridge.run() from async code"
        )
    return asyncio.run(factory())


def _deny_attribute(obj: Any, attr_name: Any, is_setting: bool) -> Any:
    raise AttributeError(f"access to attribute '{attr_name}' is not allowed")


def extract_script(reply: str) -> str:
    """Pull the script out of a model reply, dropping markdown fences."""
    match = _FENCE_RE.search(reply)
    if match:
        return match.group(1).strip()
    return reply.strip()


class ValueMarshal:
    """Converts between script values and one Lua runtime's values.

    Lists and records carry a marker metatable. A list's marker holds its
    length, so nil items survive, and a record's marker names its nil
    fields, so empty and nil-valued fields survive a round trip. Errors
    become their message text.
    """

    def __init__(self, runtime: LuaRuntime) -> None:
        self._runtime = runtime
        self._setmetatable = runtime.eval("setmetatable")
        self._getmetatable = runtime.eval("getmetatable")

    def to_script(self, value: ScriptValue) -> Any:
        if isinstance(value, Nil):
            return None
        if isinstance(value, (Bool, Number, Text)):
            return value.value
        if isinstance(value, Error):
            return value.message
        if isinstance(value, List):
            table = self._runtime.table()
            for index, item in enumerate(value.items, start=1):
                table[index] = self.to_script(item)
            marker = self._runtime.table(**{LIST_LENGTH_KEY: len(value.items)})
            self._setmetatable(table, marker)
            return table
        if isinstance(value, Record):
            table = self._runtime.table()
            nil_keys = []
            for key, item in value.fields.items():
                if isinstance(item, Nil):
                    nil_keys.append(key)
                else:
                    table[key] = self.to_script(item)
            marker = self._runtime.table(**{RECORD_MARKER_KEY: True})
            marker[RECORD_NIL_KEYS] = self._runtime.table_from(nil_keys)
            self._setmetatable(table, marker)
            return table
        raise TypeError(f"Not a script value: {value!r}")

    def from_script(self, obj: Any, depth: int = 0) -> ScriptValue | None:
        """Convert a Lua value, or return None if its kind is unsupported."""
        if obj is None:
            return Nil()
        if isinstance(obj, bool):
            return Bool(obj)
        if isinstance(obj, (int, float)):
            return Number(obj)
        if isinstance(obj, bytes):
            return Text(obj.decode("utf-8", errors="replace"))
        if isinstance(obj, str):
            return Text(obj)
        if lua_type(obj) == "table" and depth < MAX_TABLE_DEPTH:
            return self._from_table(obj, depth)
        return None

    def _from_table(self, table: Any, depth: int) -> ScriptValue:
        entries: dict[Any, ScriptValue] = {}
        for key, item in table.items():
            converted = self.from_script(item, depth + 1)
            if converted is not None:
                entries[key] = converted

        meta = self._getmetatable(table)
        if meta is not None and lua_type(meta) != "table":
            meta = None

        if meta is None or not meta[RECORD_MARKER_KEY]:
            int_keys = [k for k in entries if isinstance(k, int) and not isinstance(k, bool)]
            if len(int_keys) == len(entries):
                # Items appended by the script extend a marked list.
                length = max([0, *int_keys])
                marked = meta[LIST_LENGTH_KEY] if meta is not None else None
                if isinstance(marked, int) and not isinstance(marked, bool):
                    length = max(length, marked)
                elif length != len(int_keys):
                    length = -1
                if length >= 0 and all(1 <= k <= length for k in int_keys):
                    return List([entries.get(i, Nil()) for i in range(1, length + 1)])

        fields = {_key_text(k): item for k, item in entries.items()}
        nil_keys = meta[RECORD_NIL_KEYS] if meta is not None else None
        if nil_keys is not None and lua_type(nil_keys) == "table":
            for key in nil_keys.values():
                fields.setdefault(_key_text(key), Nil())
        return Record(fields)


def _key_text(key: Any) -> str:
    if isinstance(key, bytes):
        return key.decode("utf-8", errors="replace")
    return str(key)


def _error_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class ScriptBridge:
    """Executes scripts with every active command exposed as a function."""

    def __init__(
        self,
        registry: CommandRegistry,
        shared: SharedContext,
        excluding: Iterable[str] = (),
    ) -> None:
        self._registry = registry
        self._shared = shared
        self._excluding = frozenset(excluding)

    def execute(self, code: str, output: OutputChannel) -> str:
        """Run a script synchronously and return the transcript text.

        Raises:
            ScriptError: parse error, script-level error, or a failed
                command. Commands already executed are not rolled back.
        """
        runtime = LuaRuntime(
            unpack_returned_tuples=True,
            register_eval=False,
            register_builtins=False,
            attribute_filter=_deny_attribute,
        )
        marshal = ValueMarshal(runtime)
        active = {c.name for c in self._registry.list(self._excluding)}

        def call(name: str, *lua_args: Any) -> Any:
            return self._call(marshal, output, name, lua_args)

        def has_command(name: Any) -> bool:
            return name in active

        runtime.eval(_BINDING)(call, has_command)

        # lupa re-raises exceptions from Python callbacks as themselves and
        # reports syntax/runtime errors as LuaError; both abort the script.
        try:
            runtime.execute(code)
        except Exception as e:
            raise ScriptError(_error_text(e)) from e

        return output.text()

    async def run(self, code: str, output: OutputChannel) -> str:
        """Run a script from async code on a worker thread."""
        return await asyncio.to_thread(self.execute, code, output)

    def _call(
        self,
        marshal: ValueMarshal,
        output: OutputChannel,
        name: str,
        lua_args: tuple[Any, ...],
    ) -> Any:
        args = [v for v in (marshal.from_script(a) for a in lua_args) if v is not None]

        try:
            with self._shared.lease() as context:
                result = run_to_completion(
                    lambda: self._registry.dispatch(context, name, args, output)
                )
        except Exception as e:
            logger.info("Script command %s failed: %s", name, e)
            raise LuaError(_error_text(e)) from e

        return marshal.to_script(result)
