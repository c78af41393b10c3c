"""
Typed stream events.

Event sources deliver a closed set of variants: ``StreamStart``, ``TickEnd``,
one ``GameEvent`` subclass per known game event family, ``UnknownEvent`` for
anything else, and ``StreamEnd``. Raw ``(name, fields)`` payloads are
validated here, at the source boundary, so malformed fields fail at decode
time instead of reaching the engine.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from demotables.core.constants import (
    BOMB_LIFECYCLE_EVENTS,
    UTILITY_LIFECYCLE_EVENTS,
    GameEventName,
)
from demotables.core.exceptions import StreamDecodeError

logger = logging.getLogger(__name__)


class StreamEvent(BaseModel):
    """Base class of everything an event source yields."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class StreamStart(StreamEvent):
    """Fired once before gameplay."""

    header: dict[str, Any] = Field(default_factory=dict, description="Demo header")


class TickEnd(StreamEvent):
    """Tick boundary: the entity directory now holds this tick's state."""

    tick: int = Field(..., ge=0)


class StreamEnd(StreamEvent):
    """Terminal event; ``error`` is set when decoding failed."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    error: BaseException | None = None


# ============================================================================
# Game events
# ============================================================================


class GameEvent(StreamEvent):
    """A named game event."""

    name: str


class MatchStartEvent(GameEvent):
    name: str = GameEventName.MATCH_START.value


class RoundStartEvent(GameEvent):
    name: str = GameEventName.ROUND_START.value


class RoundOfficiallyEndedEvent(GameEvent):
    name: str = GameEventName.ROUND_OFFICIALLY_ENDED.value


class WeaponFireEvent(GameEvent):
    name: str = GameEventName.WEAPON_FIRE.value
    shooter_id: int = Field(..., alias="userid")
    weapon: str = ""


class PlayerDeathEvent(GameEvent):
    name: str = GameEventName.PLAYER_DEATH.value
    victim_id: int = Field(..., alias="userid")
    attacker_id: int | None = Field(None, alias="attacker")
    assister_id: int | None = Field(None, alias="assister")
    assist_flash: bool = Field(False, alias="assistedflash")
    weapon: str = ""
    headshot: bool = False
    penetrated: int = 0


class UtilityLifecycleEvent(GameEvent):
    """Detonation, expiry, burn and decoy events of a thrown utility."""

    actor_id: int | None = Field(None, alias="userid")
    entity_id: int | None = Field(None, alias="entityid")
    # Left empty when the payload carries no coordinate
    x: float | None = None
    y: float | None = None
    z: float | None = None


class BombLifecycleEvent(GameEvent):
    actor_id: int | None = Field(None, alias="userid")
    site: int | None = None


class UnknownEvent(GameEvent):
    """A game event the engine has no handler for."""

    payload: dict[str, Any] = Field(default_factory=dict)


_EVENT_MODELS: dict[str, type[GameEvent]] = {
    GameEventName.MATCH_START: MatchStartEvent,
    GameEventName.ROUND_START: RoundStartEvent,
    GameEventName.ROUND_OFFICIALLY_ENDED: RoundOfficiallyEndedEvent,
    GameEventName.WEAPON_FIRE: WeaponFireEvent,
    GameEventName.PLAYER_DEATH: PlayerDeathEvent,
    **{name: UtilityLifecycleEvent for name in UTILITY_LIFECYCLE_EVENTS},
    **{name: BombLifecycleEvent for name in BOMB_LIFECYCLE_EVENTS},
}


def decode_game_event(name: str, fields: dict[str, Any] | None = None) -> GameEvent:
    """
    Decode a raw named game event into its typed variant.

    Args:
        name: Game event name as declared by the demo
        fields: Event payload

    Returns:
        The typed event; ``UnknownEvent`` for names without a model

    Raises:
        StreamDecodeError: If the payload doesn't validate against the model
    """
    fields = dict(fields or {})
    model = _EVENT_MODELS.get(name)
    if model is None:
        return UnknownEvent(name=name, payload=fields)

    fields.pop("name", None)
    try:
        return model.model_validate({"name": name, **fields})
    except ValidationError as e:
        raise StreamDecodeError(f"Malformed '{name}' event: {e}") from e
