"""
Entity directory - queryable live state of the players in a match.

The directory is owned by the event source and is only valid while the
event it accompanies is being handled.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from demotables.core.schemas import Position

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerHandle:
    """Player state at the current instant."""

    player_id: int  # per-match identity handle (userid)
    steam_id: str
    name: str
    health: int
    position: Position
    view_angles: tuple[float, float]  # pitch, yaw
    speed: float
    place_name: str = ""

    @property
    def is_alive(self) -> bool:
        return self.health > 0


@dataclass(frozen=True)
class EquippedWeapon:
    """The weapon a player is holding and where its owner stands."""

    class_id: str  # e.g. "weapon_hegrenade"
    owner_position: Position


@runtime_checkable
class EntityDirectory(Protocol):
    """Read-only view the correlation engine queries while handling an event."""

    def get_player_roster(self) -> list[PlayerHandle]: ...

    def get_player_by_id(self, player_id: int) -> PlayerHandle | None: ...

    def get_equipped_weapon(self, player_id: int) -> EquippedWeapon | None: ...

    def get_current_round(self) -> int: ...

    def get_current_tick(self) -> int: ...


class InMemoryEntityDirectory:
    """
    Mutable in-memory directory.

    Event sources refresh it before delivering each event; the engine only
    reads it.
    """

    def __init__(self) -> None:
        self._players: dict[int, PlayerHandle] = {}
        self._weapons: dict[int, str] = {}
        self.current_tick = 0
        self.current_round = 0

    def set_players(
        self,
        players: Iterable[PlayerHandle],
        weapons: dict[int, str] | None = None,
    ) -> None:
        """Replace the roster (and optionally every player's equipped weapon class)."""
        self._players = {p.player_id: p for p in players}
        if weapons is not None:
            self._weapons = dict(weapons)

    def upsert_player(self, player: PlayerHandle, weapon: str | None = None) -> None:
        self._players[player.player_id] = player
        if weapon is not None:
            self._weapons[player.player_id] = weapon

    def remove_player(self, player_id: int) -> None:
        self._players.pop(player_id, None)
        self._weapons.pop(player_id, None)

    def set_weapon(self, player_id: int, class_id: str | None) -> None:
        if class_id is None:
            self._weapons.pop(player_id, None)
        else:
            self._weapons[player_id] = class_id

    # EntityDirectory protocol

    def get_player_roster(self) -> list[PlayerHandle]:
        return list(self._players.values())

    def get_player_by_id(self, player_id: int) -> PlayerHandle | None:
        return self._players.get(player_id)

    def get_equipped_weapon(self, player_id: int) -> EquippedWeapon | None:
        player = self._players.get(player_id)
        class_id = self._weapons.get(player_id)
        if player is None or not class_id:
            return None
        return EquippedWeapon(class_id=class_id, owner_position=player.position)

    def get_current_round(self) -> int:
        return self.current_round

    def get_current_tick(self) -> int:
        return self.current_tick
