"""Built-in plugins, keyed by the name used in configuration."""

from foreman.plugin.builtin.delegate import DelegatePlugin
from foreman.plugin.builtin.files import FilesPlugin
from foreman.plugin.builtin.memory import MemoryPlugin

BUILTIN_PLUGINS = {
    FilesPlugin.name: FilesPlugin,
    MemoryPlugin.name: MemoryPlugin,
    DelegatePlugin.name: DelegatePlugin,
}

__all__ = ["BUILTIN_PLUGINS", "DelegatePlugin", "FilesPlugin", "MemoryPlugin"]
