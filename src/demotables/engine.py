"""
Correlation Engine for Match Replay Event Streams

Turns a typed, ordered event stream into table records:
- Match phase gating (nothing is recorded before the match officially starts)
- Per-tick player snapshots (alive players only)
- Utility throw synthesis from weapon_fire events
- Death enrichment (last known victim state)
- 1:1 utility and bomb lifecycle records

Every event is handled to completion, records included, before the next
one is accepted. The round stamped on a record is read from the entity
directory while its triggering event is being handled.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from demotables.core.constants import BombEventKind, UtilityEventKind, classify_utility
from demotables.core.directory import EntityDirectory, PlayerHandle
from demotables.core.events import (
    BombLifecycleEvent,
    MatchStartEvent,
    PlayerDeathEvent,
    RoundOfficiallyEndedEvent,
    RoundStartEvent,
    StreamEnd,
    StreamEvent,
    StreamStart,
    TickEnd,
    UnknownEvent,
    UtilityLifecycleEvent,
    WeaponFireEvent,
    decode_game_event,
)
from demotables.core.exceptions import (
    EntityLookupMiss,
    StreamDecodeError,
    UnknownUtilityClass,
)
from demotables.core.schemas import (
    BombLifecycleRecord,
    DeathRecord,
    PlayerSnapshot,
    Position,
    TableRecord,
    UtilityLifecycleRecord,
    WeaponFireRecord,
)
from demotables.sinks import TableSinks

logger = logging.getLogger(__name__)


class MatchPhaseTracker:
    """Whether live play has begun. One-way: once live, never reset."""

    def __init__(self) -> None:
        self.is_live = False

    def mark_live(self) -> bool:
        """Switch to live. Returns True only on the actual transition."""
        if self.is_live:
            return False
        self.is_live = True
        return True


# ============================================================================
# Record shaping
# ============================================================================


def snapshot_player(player: PlayerHandle, tick: int, round_num: int) -> PlayerSnapshot:
    """Build a tick-table row from a player's directory state."""
    pitch, yaw = player.view_angles
    return PlayerSnapshot(
        tick=tick,
        round=round_num,
        player_id=player.player_id,
        identity_id=player.steam_id,
        name=player.name,
        health=player.health,
        view_pitch=pitch,
        view_yaw=yaw,
        speed=player.speed,
        position=player.position,
        place_name=player.place_name,
    )


def death_record(event: PlayerDeathEvent, tick: int, round_num: int) -> DeathRecord:
    return DeathRecord(
        tick=tick,
        round=round_num,
        victim_id=event.victim_id,
        attacker_id=event.attacker_id,
        assister_id=event.assister_id,
        assist_flash=event.assist_flash,
        weapon_id=event.weapon,
        headshot=event.headshot,
        penetration_count=event.penetrated,
    )


def utility_event_record(
    event: UtilityLifecycleEvent, tick: int, round_num: int
) -> UtilityLifecycleRecord:
    return UtilityLifecycleRecord(
        tick=tick,
        round=round_num,
        event_kind=UtilityEventKind(event.name).value,
        actor_id=event.actor_id,
        position=Position(event.x, event.y, event.z),
        entity_id=event.entity_id,
    )


def bomb_event_record(event: BombLifecycleEvent, tick: int, round_num: int) -> BombLifecycleRecord:
    return BombLifecycleRecord(
        tick=tick,
        round=round_num,
        event_kind=BombEventKind(event.name).value,
        actor_id=event.actor_id,
    )


# ============================================================================
# Engine
# ============================================================================


class CorrelationEngine:
    """
    Dispatches stream events to handlers and appends the resulting records.

    The engine owns its ``MatchPhaseTracker``; the directory belongs to the
    event source and is only queried, never modified.
    """

    def __init__(
        self,
        directory: EntityDirectory,
        sinks: TableSinks,
        tracker: MatchPhaseTracker | None = None,
    ):
        self.directory = directory
        self.sinks = sinks
        self.tracker = tracker or MatchPhaseTracker()
        self.ended = False

        self._handlers: dict[type[StreamEvent], Callable[[Any], None]] = {
            StreamStart: self._on_stream_start,
            TickEnd: self._on_tick_end,
            StreamEnd: self._on_stream_end,
            MatchStartEvent: self._on_match_start,
            RoundStartEvent: self._on_round_start,
            RoundOfficiallyEndedEvent: self._on_round_officially_ended,
            WeaponFireEvent: self._on_weapon_fire,
            PlayerDeathEvent: self._on_player_death,
            UtilityLifecycleEvent: self._on_utility_lifecycle,
            BombLifecycleEvent: self._on_bomb_lifecycle,
            UnknownEvent: self._on_unknown,
        }

    def handle(self, event: StreamEvent) -> None:
        """Process one event to completion."""
        if self.ended:
            logger.warning(f"Ignoring {type(event).__name__} delivered after stream end")
            return
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported stream event: {type(event).__name__}")
        handler(event)

    # Callback-style surface

    def on_start(self, header: dict[str, Any] | None = None) -> None:
        self.handle(StreamStart(header=header or {}))

    def on_tick_end(self) -> None:
        self.handle(TickEnd(tick=self.directory.get_current_tick()))

    def on_game_event(self, name: str, fields: dict[str, Any] | None = None) -> None:
        self.handle(decode_game_event(name, fields))

    def on_end(self, error: BaseException | None = None) -> None:
        self.handle(StreamEnd(error=error))

    # ------------------------------------------------------------------
    # Stream lifecycle
    # ------------------------------------------------------------------

    def _on_stream_start(self, event: StreamStart) -> None:
        logger.info("Parsing started!")
        if event.header:
            logger.info(
                f"Map: {event.header.get('map_name', 'unknown')}, "
                f"Server: {event.header.get('server_name', '')}"
            )

    def _on_stream_end(self, event: StreamEnd) -> None:
        self.ended = True
        if event.error is not None:
            logger.error(f"Parsing aborted: {event.error}")
            self.sinks.close_all(suppress_errors=True)
            if isinstance(event.error, StreamDecodeError):
                raise event.error
            raise StreamDecodeError(str(event.error)) from event.error

        self.sinks.close_all()
        counts = ", ".join(f"{table}={n}" for table, n in self.sinks.row_counts().items())
        logger.info(f"Parsing ended! Rows written: {counts}")

    def _on_match_start(self, event: MatchStartEvent) -> None:
        if self.tracker.mark_live():
            logger.info("Match has started!")

    def _on_round_start(self, event: RoundStartEvent) -> None:
        round_num = self.directory.get_current_round()
        if round_num > 0:
            logger.info(f"Round {round_num} started!")

    def _on_round_officially_ended(self, event: RoundOfficiallyEndedEvent) -> None:
        logger.info("\tRound ended!")

    def _on_unknown(self, event: UnknownEvent) -> None:
        pass

    # ------------------------------------------------------------------
    # Record producing handlers (gated on the match being live)
    # ------------------------------------------------------------------

    def _on_tick_end(self, event: TickEnd) -> None:
        if not self.tracker.is_live:
            return
        tick, round_num = self._clock()
        # Dead players are skipped; their last state is recorded on death
        for player in self.directory.get_player_roster():
            if player.is_alive:
                self._emit(snapshot_player(player, tick, round_num))

    def _on_weapon_fire(self, event: WeaponFireEvent) -> None:
        if not self.tracker.is_live:
            return
        tick, round_num = self._clock()
        self._emit(
            WeaponFireRecord(
                tick=tick,
                round=round_num,
                shooter_id=event.shooter_id,
                weapon_id=event.weapon,
            )
        )
        try:
            thrown = self._synthesize_throw(event, tick, round_num)
        except EntityLookupMiss as e:
            logger.debug(f"No equipped weapon for shooter {e} at tick {tick}")
            return
        except UnknownUtilityClass:
            return
        self._emit(thrown)

    def _synthesize_throw(
        self, event: WeaponFireEvent, tick: int, round_num: int
    ) -> UtilityLifecycleRecord:
        """
        Build the "<category>_thrown" record for a utility leaving the hand.

        Raises:
            EntityLookupMiss: The shooter has no resolvable equipped weapon
            UnknownUtilityClass: The equipped weapon is not a utility
        """
        weapon = self.directory.get_equipped_weapon(event.shooter_id)
        if weapon is None:
            raise EntityLookupMiss(event.shooter_id)
        category = classify_utility(weapon.class_id)
        return UtilityLifecycleRecord(
            tick=tick,
            round=round_num,
            event_kind=UtilityEventKind.thrown(category).value,
            actor_id=event.shooter_id,
            position=weapon.owner_position,
        )

    def _on_player_death(self, event: PlayerDeathEvent) -> None:
        if not self.tracker.is_live:
            return
        tick, round_num = self._clock()
        self._emit(death_record(event, tick, round_num))

        # Last known state of the victim; the tick emitter skips dead players
        victim = self.directory.get_player_by_id(event.victim_id)
        if victim is None:
            logger.debug(f"Victim {event.victim_id} not in directory at tick {tick}")
            return
        self._emit(snapshot_player(victim, tick, round_num))

        if logger.isEnabledFor(logging.INFO) and event.attacker_id is not None:
            killer = self.directory.get_player_by_id(event.attacker_id)
            if killer is not None:
                logger.info(f"{killer.name} killed {victim.name} with {event.weapon}")

    def _on_utility_lifecycle(self, event: UtilityLifecycleEvent) -> None:
        if not self.tracker.is_live:
            return
        tick, round_num = self._clock()
        self._emit(utility_event_record(event, tick, round_num))

    def _on_bomb_lifecycle(self, event: BombLifecycleEvent) -> None:
        if not self.tracker.is_live:
            return
        tick, round_num = self._clock()
        self._emit(bomb_event_record(event, tick, round_num))

    # ------------------------------------------------------------------

    def _clock(self) -> tuple[int, int]:
        return self.directory.get_current_tick(), self.directory.get_current_round()

    def _emit(self, record: TableRecord) -> None:
        self.sinks.append(record)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"{record.table}: {record.to_dict()}")
