"""
Event source contract and an in-memory scripted source.

An event source is iterated exactly once. Before yielding each event it
brings its ``directory`` up to date, so the directory reflects the state at
that event's delivery.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from demotables.core.directory import EntityDirectory, InMemoryEntityDirectory, PlayerHandle
from demotables.core.events import (
    StreamEnd,
    StreamEvent,
    StreamStart,
    TickEnd,
    decode_game_event,
)
from demotables.core.exceptions import StreamDecodeError

logger = logging.getLogger(__name__)


class EventSource(Protocol):
    directory: EntityDirectory

    def __iter__(self) -> Iterator[StreamEvent]: ...


@dataclass
class _DirectoryState:
    tick: int = 0
    round: int = 0
    players: tuple[PlayerHandle, ...] = ()
    weapons: dict[int, str] = field(default_factory=dict)


@dataclass
class _Step:
    state: _DirectoryState
    event: StreamEvent | None = None
    raw: tuple[str, dict[str, Any]] | None = None


class ScriptedEventSource:
    """
    Event source built from an explicit script.

    Usage:
        source = ScriptedEventSource()
        source.start()
        source.game_event("round_announce_match_start")
        source.tick(100, round_num=1, players=[alice])
        source.game_event("weapon_fire", {"userid": 1, "weapon": "weapon_ak47"})
        source.end()

    Raw game events are decoded while the script is replayed, so a malformed
    payload ends the stream with ``StreamEnd(error=StreamDecodeError)``.
    """

    def __init__(self) -> None:
        self.directory = InMemoryEntityDirectory()
        self._state = _DirectoryState()
        self._steps: list[_Step] = []

    # Script building

    def set_state(
        self,
        tick: int | None = None,
        round_num: int | None = None,
        players: Iterable[PlayerHandle] | None = None,
        weapons: dict[int, str] | None = None,
    ) -> ScriptedEventSource:
        """Change the directory state seen by every following event."""
        self._state = _DirectoryState(
            tick=self._state.tick if tick is None else tick,
            round=self._state.round if round_num is None else round_num,
            players=self._state.players if players is None else tuple(players),
            weapons=self._state.weapons if weapons is None else dict(weapons),
        )
        return self

    def start(self, header: dict[str, Any] | None = None) -> ScriptedEventSource:
        return self.add(StreamStart(header=header or {}))

    def tick(
        self,
        tick: int,
        round_num: int | None = None,
        players: Iterable[PlayerHandle] | None = None,
        weapons: dict[int, str] | None = None,
    ) -> ScriptedEventSource:
        """Set the directory state for ``tick`` and end the tick."""
        self.set_state(tick=tick, round_num=round_num, players=players, weapons=weapons)
        return self.add(TickEnd(tick=tick))

    def game_event(self, name: str, fields: dict[str, Any] | None = None) -> ScriptedEventSource:
        self._steps.append(_Step(state=self._state, raw=(name, dict(fields or {}))))
        return self

    def end(self, error: BaseException | None = None) -> ScriptedEventSource:
        return self.add(StreamEnd(error=error))

    def add(self, event: StreamEvent) -> ScriptedEventSource:
        self._steps.append(_Step(state=self._state, event=event))
        return self

    # Replay

    def __iter__(self) -> Iterator[StreamEvent]:
        for step in self._steps:
            self._apply(step.state)
            if step.raw is None:
                yield step.event  # type: ignore[misc]
                continue
            name, fields = step.raw
            try:
                event = decode_game_event(name, fields)
            except StreamDecodeError as e:
                logger.error(f"Decode error at tick {step.state.tick}: {e}")
                yield StreamEnd(error=e)
                return
            yield event

    def _apply(self, state: _DirectoryState) -> None:
        self.directory.current_tick = state.tick
        self.directory.current_round = state.round
        self.directory.set_players(state.players, state.weapons)
