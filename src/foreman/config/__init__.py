"""Configuration — Pydantic models for foreman settings."""

from __future__ import annotations

import os
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = "config.yml"

DEFAULT_CONFIG = """\
llm:
  # litellm model names, with their provider prefix
  model: openai/gpt-4o-mini
  fast_model: openai/gpt-4o-mini

agent:
  name: Foreman
  role: An autonomous AI assistant that completes its end goals using the commands it is given.
  goals:
    - Write a short haiku about the ocean to the file haiku.txt.
    - Remember which file the haiku was saved to.
  token_budget: 3200

plugins:
  files:
    workspace: workspace
  memory:
    path: ~/.foreman/memory.jsonl
  delegate: {}

disabled_commands: []
"""


class LLMConfig(BaseModel):
    """Model configuration.

    Model names use litellm's provider-prefix format:
        "openai/gpt-4o-mini"
        "anthropic/claude-sonnet-4-5-20250929"

    API keys are read from env vars automatically by litellm.
    """

    model: str = Field(default="openai/gpt-4o-mini")
    fast_model: str = Field(
        default="openai/gpt-4o-mini",
        description="Model minions use to write scripts and findings",
    )
    temperature: float | None = Field(default=None)
    max_tokens: int | None = Field(default=None)


class AgentConfig(BaseModel):
    """Who the agent is and how its cycle is tuned."""

    name: str = Field(default="Foreman")
    role: str = Field(
        default="An autonomous AI assistant that completes its end goals "
        "using the commands it is given."
    )
    goals: list[str] = Field(default_factory=list)
    token_budget: int = Field(
        default=3200, description="Short-term history budget in tokens"
    )
    eviction_savings: int = Field(
        default=2000, description="Stop evicting once this many tokens are freed"
    )
    cycle_attempts: int = Field(default=5, ge=1)
    minion_attempts: int = Field(default=3, ge=1)
    pause_seconds: float = Field(
        default=0.0, description="Delay between a reply and running its commands"
    )


class ForemanConfig(BaseModel):
    """Top-level foreman configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    plugins: dict[str, dict[str, Any]] = Field(
        default_factory=lambda: {"files": {}, "memory": {}, "delegate": {}},
        description="Enabled plugins and their options, in load order",
    )
    disabled_commands: list[str] = Field(default_factory=list)
    workspace: str = Field(
        default="workspace", description="Default workspace for the files plugin"
    )
    memory_path: str = Field(
        default="~/.foreman/memory.jsonl",
        description="Default store for the memory plugin",
    )

    def plugin_options(self, name: str) -> dict[str, Any]:
        """Options for one plugin, with the top-level defaults filled in."""
        options = dict(self.plugins.get(name) or {})
        if name == "files":
            options.setdefault("workspace", self.workspace)
        elif name == "memory":
            options.setdefault("path", self.memory_path)
        return options

    @classmethod
    def default_yaml(cls) -> str:
        return DEFAULT_CONFIG

    @classmethod
    def load(cls, config_path: str | None = None) -> ForemanConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            FOREMAN_MODEL         - Override primary model (litellm format)
            FOREMAN_FAST_MODEL    - Override the minion model
            FOREMAN_TOKEN_BUDGET  - Override the short-term history budget
        """
        # .env values win over stale shell exports.
        load_dotenv(override=True)

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}

        llm = config_data.get("llm") or {}

        env_model = os.environ.get("FOREMAN_MODEL")
        if env_model:
            llm["model"] = env_model

        env_fast_model = os.environ.get("FOREMAN_FAST_MODEL")
        if env_fast_model:
            llm["fast_model"] = env_fast_model

        if llm:
            config_data["llm"] = llm

        env_budget = os.environ.get("FOREMAN_TOKEN_BUDGET")
        if env_budget:
            agent = config_data.get("agent") or {}
            agent["token_budget"] = int(env_budget)
            config_data["agent"] = agent

        # A bare "delegate:" key in YAML means "enabled, no options".
        plugins = config_data.get("plugins")
        if isinstance(plugins, dict):
            config_data["plugins"] = {k: v or {} for k, v in plugins.items()}

        return cls.model_validate(config_data)
