"""Plugins — bundles of commands plus hooks into the agent cycle."""

from foreman.plugin.base import Plugin, PluginSet

__all__ = ["Plugin", "PluginSet"]
