"""Wire protocol — decouples the agent core from whatever displays it.

Events flow from the run loop and minions to subscribers. The CLI
subscribes and prints; tests subscribe and assert.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Any


class EventType(enum.Enum):
    CYCLE_BEGIN = "cycle_begin"
    THOUGHT = "thought"
    TRANSCRIPT = "transcript"
    RETRY = "retry"
    RESET = "reset"
    GOAL_ADVANCED = "goal_advanced"
    EVICTION = "eviction"
    MINION_SCRIPT = "minion_script"
    MINION_REPORT = "minion_report"
    ERROR = "error"
    STATUS = "status"


@dataclass
class WireEvent:
    """An event on the wire."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


class Wire:
    """Async message bus: agent -> display subscribers.

    Single-producer, multi-consumer broadcast. Must be fed from the thread
    running the event loop.
    """

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[WireEvent | None]] = []
        self._closed: bool = False

    def send(self, event: WireEvent) -> None:
        """Send an event to all subscribers.

        Silently drops events after ``close()`` has been called.
        """
        if self._closed:
            return
        for q in self._subscribers:
            q.put_nowait(event)

    def send_status(self, message: str) -> None:
        self.send(WireEvent(type=EventType.STATUS, data={"message": message}))

    def send_error(self, error: str) -> None:
        self.send(WireEvent(type=EventType.ERROR, data={"error": error}))

    def send_cycle_begin(self, cycle: int, tokens: int, chars: int) -> None:
        self.send(
            WireEvent(
                type=EventType.CYCLE_BEGIN,
                data={"cycle": cycle, "tokens": tokens, "chars": chars},
            )
        )

    def send_thought(
        self,
        points: list[str],
        endgoal: str,
        plan: list[str],
        step: str,
        commands: list[dict[str, Any]],
    ) -> None:
        self.send(
            WireEvent(
                type=EventType.THOUGHT,
                data={
                    "points": points,
                    "endgoal": endgoal,
                    "plan": plan,
                    "step": step,
                    "commands": commands,
                },
            )
        )

    def send_transcript(self, lines: list[str]) -> None:
        self.send(WireEvent(type=EventType.TRANSCRIPT, data={"lines": lines}))

    def send_retry(self, attempt: int, attempts: int, error: str) -> None:
        self.send(
            WireEvent(
                type=EventType.RETRY,
                data={"attempt": attempt, "attempts": attempts, "error": error},
            )
        )

    def send_reset(self, steps: int) -> None:
        self.send(WireEvent(type=EventType.RESET, data={"steps": steps}))

    def send_goal_advanced(self, goal: str) -> None:
        self.send(WireEvent(type=EventType.GOAL_ADVANCED, data={"goal": goal}))

    def send_eviction(self, removed: int, tokens_before: int, tokens_after: int) -> None:
        self.send(
            WireEvent(
                type=EventType.EVICTION,
                data={
                    "removed": removed,
                    "tokens_before": tokens_before,
                    "tokens_after": tokens_after,
                },
            )
        )

    def send_minion_script(self, attempt: int, script: str) -> None:
        self.send(
            WireEvent(
                type=EventType.MINION_SCRIPT,
                data={"attempt": attempt, "script": script},
            )
        )

    def send_minion_report(self, report: str) -> None:
        self.send(WireEvent(type=EventType.MINION_REPORT, data={"report": report}))

    def subscribe(self) -> asyncio.Queue[WireEvent | None]:
        """Subscribe to events. Returns a queue to read from."""
        q: asyncio.Queue[WireEvent | None] = asyncio.Queue()
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        """Unsubscribe from events."""
        if q in self._subscribers:
            self._subscribers.remove(q)

    def close(self) -> None:
        """Signal all subscribers that the wire is closing."""
        self._closed = True
        for q in self._subscribers:
            q.put_nowait(None)
