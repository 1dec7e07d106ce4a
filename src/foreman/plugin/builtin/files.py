"""File system plugin — read, write, and list files in a workspace."""

from __future__ import annotations

import os
from typing import Any

from foreman.command.base import Command, CommandContext, text_arg
from foreman.command.truncation import sanitize_text, truncate_output
from foreman.errors import CommandInvocationFailed
from foreman.plugin.base import Plugin
from foreman.script.value import List, ScriptValue, Text, as_text


class _WorkspaceCommand(Command):
    def __init__(self, workspace: str) -> None:
        self._workspace = os.path.abspath(workspace)

    def _resolve(self, path: str) -> str:
        """Resolve ``path`` inside the workspace; escaping it is an error."""
        full = os.path.abspath(os.path.join(self._workspace, path))
        if os.path.commonpath([full, self._workspace]) != self._workspace:
            raise CommandInvocationFailed(self.name, f"Path is outside the workspace: {path}")
        return full


class WriteFileCommand(_WorkspaceCommand):
    name = "write_file"
    purpose = "Write text to a file, creating it and its directories. Overwrites existing content."
    args = (("path", "Path relative to the workspace."), ("content", "Text to write."))

    async def invoke(self, context: CommandContext, args: list[ScriptValue]) -> ScriptValue:
        path = self._resolve(text_arg(self.name, args, 0, "path"))
        content = text_arg(self.name, args, 1, "content")

        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w") as f:
                f.write(content)
        except OSError as e:
            raise CommandInvocationFailed(self.name, f"Error writing file: {e}") from e

        lines = content.count("\n") + 1
        return Text(f"Wrote {lines} lines to {os.path.relpath(path, self._workspace)}")


class ReadFileCommand(_WorkspaceCommand):
    name = "read_file"
    purpose = "Read the contents of a text file."
    args = (("path", "Path relative to the workspace."),)

    async def invoke(self, context: CommandContext, args: list[ScriptValue]) -> ScriptValue:
        rel = text_arg(self.name, args, 0, "path")
        path = self._resolve(rel)

        if not os.path.isfile(path):
            raise CommandInvocationFailed(self.name, f"File not found: {rel}")

        try:
            with open(path, "r", errors="replace") as f:
                content = f.read()
        except OSError as e:
            raise CommandInvocationFailed(self.name, f"Error reading file: {e}") from e

        return Text(truncate_output(sanitize_text(content)))


class ListFilesCommand(_WorkspaceCommand):
    name = "list_files"
    purpose = "List the files and directories in a workspace directory."
    args = (("directory", "Directory relative to the workspace. Defaults to the workspace root."),)

    async def invoke(self, context: CommandContext, args: list[ScriptValue]) -> ScriptValue:
        rel = as_text(args[0]) if args else "."
        path = self._resolve(rel or ".")

        if not os.path.isdir(path):
            raise CommandInvocationFailed(self.name, f"Not a directory: {rel}")

        entries = []
        for entry in sorted(os.listdir(path)):
            suffix = "/" if os.path.isdir(os.path.join(path, entry)) else ""
            entries.append(Text(f"{entry}{suffix}"))
        return List(entries)


class FilesPlugin(Plugin):
    """Gives the agent a scratch workspace on disk."""

    name = "files"

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        super().__init__(options)
        workspace = os.path.expanduser(self.options.get("workspace", "workspace"))
        os.makedirs(workspace, exist_ok=True)
        self.workspace = os.path.abspath(workspace)
        self.commands = [
            WriteFileCommand(self.workspace),
            ReadFileCommand(self.workspace),
            ListFilesCommand(self.workspace),
        ]
