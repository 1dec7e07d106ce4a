"""Structured model replies — the thought record and its parser."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from foreman.errors import ResponseParseError
from foreman.llm.message import Message
from foreman.llm.provider import ChatModel

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_FENCE_RE = re.compile(r"```[\w+-]*[ \t]*\n(.*?)```", re.DOTALL)

FIX_FORMAT_PROMPT = """\
Your last reply could not be parsed: {error}

Respond again in the exact same format. Make sure every field is included \
and the reply can be parsed by Python json.loads."""


class Takeaway(BaseModel):
    takeaway: str
    points: list[str] = Field(default_factory=list)


class GoalInformation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_endgoal: str = Field(default="", alias="current endgoal")
    plan: list[str] = Field(default_factory=list)
    step: str = ""


class CommandCall(BaseModel):
    """One command invocation requested by the model."""

    name: str
    args: list[Any] | dict[str, Any] = Field(default_factory=list)

    @field_validator("args", mode="before")
    @classmethod
    def _wrap_scalar(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, (list, dict)):
            return v
        return [v]


class Thought(BaseModel):
    """One cycle's structured reply from the model."""

    model_config = ConfigDict(populate_by_name=True)

    summary: list[Takeaway] = Field(default_factory=list)
    goal_information: GoalInformation = Field(alias="goal information")
    command: list[CommandCall]
    plan_complete: bool = Field(default=False, alias="will be done with plan")

    @field_validator("summary", mode="before")
    @classmethod
    def _null_summary(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("command", mode="before")
    @classmethod
    def _wrap_single_command(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, dict):
            return [v]
        return v

    def points(self) -> list[str]:
        """Every takeaway followed by its points, flattened."""
        out: list[str] = []
        for item in self.summary:
            out.append(item.takeaway)
            out.extend(item.points)
        return out


def _candidates(text: str) -> list[str]:
    """Plausible structured payloads inside a reply, most specific first."""
    found: list[str] = [m.group(1) for m in _FENCE_RE.finditer(text)]
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        found.append(text[start : end + 1])
    found.append(text)
    return found


def _load(payload: str) -> Any:
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        return yaml.safe_load(payload)


def parse_structured(text: str, model_type: type[M]) -> M:
    """Parse a JSON or YAML reply into ``model_type``.

    Raises:
        ResponseParseError: no candidate payload validated.
    """
    last_error = "no structured data found"
    for payload in _candidates(text):
        try:
            data = _load(payload)
        except yaml.YAMLError as e:
            last_error = f"invalid JSON/YAML: {e}"
            continue
        if not isinstance(data, dict):
            last_error = "expected an object at the top level"
            continue
        try:
            return model_type.model_validate(data)
        except ValidationError as e:
            last_error = f"unexpected structure: {e}"

    raise ResponseParseError(last_error, reply=text)


def parse_response(text: str) -> Thought:
    """Parse a cycle reply into a ``Thought``."""
    return parse_structured(text, Thought)


async def try_parse(
    model: ChatModel,
    messages: list[Message],
    model_type: type[M],
    attempts: int,
    max_tokens: int | None = None,
) -> tuple[str, M]:
    """Ask the model until its reply parses, up to ``attempts`` times.

    Failed replies and a correction request are appended to a private copy
    of ``messages`` before each retry.

    Returns:
        (raw reply, parsed record)
    """
    history = list(messages)
    last_error: ResponseParseError | None = None

    for attempt in range(attempts):
        reply = await model.get_response(history, max_tokens=max_tokens)
        try:
            return reply, parse_structured(reply, model_type)
        except ResponseParseError as e:
            last_error = e
            logger.warning(
                "Unparseable %s reply (attempt %d/%d): %s",
                model_type.__name__,
                attempt + 1,
                attempts,
                e,
            )
            history.append(Message.assistant(reply))
            history.append(Message.user(FIX_FORMAT_PROMPT.format(error=e)))

    raise ResponseParseError(
        f"no parseable reply after {attempts} attempts: {last_error}",
        reply=last_error.reply if last_error else "",
    )
