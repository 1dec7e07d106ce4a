"""Error taxonomy shared by the command, script, and conversation layers."""

from __future__ import annotations


class ForemanError(Exception):
    """Base class for all foreman errors."""


class CommandNotFound(ForemanError):
    """A dispatch named a command that is not registered."""

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        self.name = name
        self.available = available or []
        message = f"Unknown command: {name}"
        if self.available:
            message += f". Available commands: {', '.join(self.available)}"
        super().__init__(message)


class CommandInvocationFailed(ForemanError):
    """A command ran but could not produce a value."""

    def __init__(self, command: str, message: str) -> None:
        self.command = command
        super().__init__(message)


class CommandConflictError(ForemanError):
    """Two plugins tried to register commands with the same name."""

    def __init__(self, name: str, first_plugin: str, second_plugin: str) -> None:
        self.name = name
        self.first_plugin = first_plugin
        self.second_plugin = second_plugin
        super().__init__(
            f"Command '{name}' from plugin '{second_plugin}' is already "
            f"registered by plugin '{first_plugin}'"
        )


class PluginDependencyError(ForemanError):
    """A plugin requires another plugin that was not loaded."""

    def __init__(self, plugin: str, dependency: str) -> None:
        self.plugin = plugin
        self.dependency = dependency
        super().__init__(
            f"Cannot run {plugin} without its needed dependency of {dependency}."
        )


class ScriptError(ForemanError):
    """A script failed to parse, raised, or a command inside it failed."""


class ResponseParseError(ForemanError):
    """The model reply did not match the expected structured format."""

    def __init__(self, message: str, reply: str = "") -> None:
        self.reply = reply
        super().__init__(message)


class CollaboratorNotificationFailed(ForemanError):
    """A plugin hook failed while history was being discarded.

    Fatal to the cycle: memory may not have captured what was removed.
    """

    def __init__(self, plugin: str, cause: BaseException) -> None:
        self.plugin = plugin
        self.cause = cause
        super().__init__(
            f"Plugin '{plugin}' failed to process removed history: {cause}"
        )


class TranscriptRenderError(ForemanError):
    """A value could not be rendered for the transcript (internal fault)."""
