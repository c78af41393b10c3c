"""
DemoTables Data Contracts

Every record that crosses the engine -> sink boundary is defined here.
If a table needs a column that doesn't exist here, ADD IT HERE FIRST,
then update the engine (producer) and the sinks (consumers).

Producer: engine.py
Consumers: sinks.py
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar

from demotables.core.constants import (
    BOMB_LIFECYCLE_TABLE,
    PLAYER_DEATH_TABLE,
    TICK_TABLE,
    UTILITY_LIFECYCLE_TABLE,
    WEAPON_FIRE_TABLE,
)


@dataclass(frozen=True)
class Position:
    """World coordinates. Event positions may lack a coordinate (None)."""

    x: float | None
    y: float | None
    z: float | None


class TableRecord:
    """
    Mixin for output records.

    Records are flattened to one row per record: a ``Position`` field named
    ``position`` becomes the ``x``, ``y`` and ``z`` columns.
    """

    table: ClassVar[str]

    @classmethod
    def describe_fields(cls) -> list[str]:
        """Column names of this record's table, in row order."""
        columns: list[str] = []
        for f in fields(cls):  # type: ignore[arg-type]
            if f.name == "position":
                columns.extend(["x", "y", "z"])
            else:
                columns.append(f.name)
        return columns

    def to_row(self) -> list[Any]:
        """Flat row values matching ``describe_fields()``."""
        row: list[Any] = []
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if isinstance(value, Position):
                row.extend([value.x, value.y, value.z])
            else:
                row.append(value)
        return row

    def to_dict(self) -> dict[str, Any]:
        return dict(zip(self.describe_fields(), self.to_row()))


# ============================================================
# TICK TABLE
# ============================================================


@dataclass(frozen=True)
class PlayerSnapshot(TableRecord):
    """State of one player at one tick."""

    table: ClassVar[str] = TICK_TABLE

    tick: int
    round: int
    player_id: int
    identity_id: str  # persistent account id (steam id)
    name: str
    health: int
    view_pitch: float
    view_yaw: float
    speed: float
    position: Position
    place_name: str


# ============================================================
# EVENT TABLES
# ============================================================


@dataclass(frozen=True)
class DeathRecord(TableRecord):
    """A player_death event, fields copied verbatim."""

    table: ClassVar[str] = PLAYER_DEATH_TABLE

    tick: int
    round: int
    victim_id: int
    attacker_id: int | None
    assister_id: int | None
    assist_flash: bool
    weapon_id: str
    headshot: bool
    penetration_count: int


@dataclass(frozen=True)
class WeaponFireRecord(TableRecord):
    """A weapon_fire event."""

    table: ClassVar[str] = WEAPON_FIRE_TABLE

    tick: int
    round: int
    shooter_id: int
    weapon_id: str


@dataclass(frozen=True)
class UtilityLifecycleRecord(TableRecord):
    """
    A utility lifecycle occurrence.

    Either synthesized from a weapon_fire of a grenade-class weapon
    (``<category>_thrown``) or copied from a dedicated lifecycle event
    (detonate, expire, startburn, extinguish, decoy started/detonate).
    """

    table: ClassVar[str] = UTILITY_LIFECYCLE_TABLE

    tick: int
    round: int
    event_kind: str
    actor_id: int | None
    position: Position
    entity_id: int | None = None  # grenade entity, unknown for thrown records


@dataclass(frozen=True)
class BombLifecycleRecord(TableRecord):
    """A bomb lifecycle event (planted, defused, exploded, dropped, pickup)."""

    table: ClassVar[str] = BOMB_LIFECYCLE_TABLE

    tick: int
    round: int
    event_kind: str
    actor_id: int | None


RECORD_TYPES: tuple[type[TableRecord], ...] = (
    PlayerSnapshot,
    DeathRecord,
    WeaponFireRecord,
    UtilityLifecycleRecord,
    BombLifecycleRecord,
)
