"""
Demo Event Source for CS2 Replay Files

Wraps demoparser2 and replays a decoded .dem file as an ordered event
stream for the correlation engine:

    StreamStart -> (game events of tick T..., TickEnd(T))* -> StreamEnd

demoparser2 decodes per table rather than per tick, so the source
decodes the tick table and every known game event up front, then merges
them by tick. Before each event is yielded the entity directory is set to
the player state of that event's tick.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from demotables.core.constants import WEAPON_DISPLAY_NAMES, GameEventName
from demotables.core.directory import InMemoryEntityDirectory, PlayerHandle
from demotables.core.events import (
    StreamEnd,
    StreamEvent,
    StreamStart,
    TickEnd,
    decode_game_event,
)
from demotables.core.exceptions import StreamDecodeError
from demotables.core.schemas import Position
from demotables.core.utils import (
    is_missing,
    safe_float,
    safe_int,
    safe_optional_int,
    safe_str,
)

try:
    from demoparser2 import DemoParser as Demoparser2

    DEMOPARSER2_AVAILABLE = True
except ImportError:
    Demoparser2 = None  # type: ignore
    DEMOPARSER2_AVAILABLE = False

logger = logging.getLogger(__name__)


# Columns that name a player in decoded events, by raw event field.
# demoparser2 may expand a userid field into "<prefix>_steamid"/"<prefix>_name".
PLAYER_REFERENCE_FIELDS = {
    "userid": ("userid", "user_userid", "user_id", "user_steamid"),
    "attacker": ("attacker", "attacker_userid", "attacker_id", "attacker_steamid"),
    "assister": ("assister", "assister_userid", "assister_id", "assister_steamid"),
}

# Event payload fields copied as-is when present
PASSTHROUGH_FIELDS = (
    "weapon",
    "headshot",
    "penetrated",
    "assistedflash",
    "entityid",
    "x",
    "y",
    "z",
    "site",
)

# Events that make no sense without their subject player
SUBJECT_REQUIRED_EVENTS = frozenset({GameEventName.WEAPON_FIRE, GameEventName.PLAYER_DEATH})

# Delivery order for events sharing a tick
_EVENT_PRIORITY = {
    GameEventName.MATCH_START: 0,
    GameEventName.ROUND_START: 1,
}


def normalize_weapon_class(name: Any) -> str | None:
    """
    Convert a decoder weapon name to a ``weapon_*`` class identifier.

    "weapon_flashbang" -> "weapon_flashbang"
    "Flashbang" -> "weapon_flashbang"
    "High Explosive Grenade" -> "weapon_hegrenade"
    "AK-47" -> "weapon_ak47"
    """
    if is_missing(name):
        return None
    text = str(name).strip()
    if not text:
        return None
    if text.startswith("weapon_"):
        return text.lower()
    lowered = text.lower()
    if lowered in WEAPON_DISPLAY_NAMES:
        return WEAPON_DISPLAY_NAMES[lowered]
    return "weapon_" + re.sub(r"[^a-z0-9]", "", lowered)


@dataclass(frozen=True)
class _PendingEvent:
    tick: int
    priority: int
    order: int
    name: str
    fields: dict[str, Any]


class DemoEventSource:
    """
    Event source over a CS2 demo file decoded with demoparser2.

    The directory holds every player present in the tick table at the
    current tick, including dead ones (health 0).
    """

    PLAYER_PROPS = [
        "X",
        "Y",
        "Z",  # Position
        "pitch",
        "yaw",  # View angles
        "velocity_X",
        "velocity_Y",
        "velocity_Z",  # Movement
        "health",
        "last_place_name",  # Location name
        "active_weapon_name",
        "user_id",
        "total_rounds_played",
    ]

    def __init__(self, demo_path: str | Path, events: list[str] | None = None):
        """
        Args:
            demo_path: Path to the .dem file
            events: Game event names to decode (default: every event the engine handles)
        """
        self.demo_path = Path(demo_path)
        if not self.demo_path.exists():
            raise FileNotFoundError(f"Demo file not found: {demo_path}")
        if self.demo_path.suffix.lower() != ".dem":
            raise ValueError(f"Expected .dem file, got: {self.demo_path.suffix}")

        self.events = events or [name.value for name in GameEventName]
        self.directory = InMemoryEntityDirectory()
        self._parser: Any = None
        self._steam_to_user: dict[str, int] = {}
        self._name_to_user: dict[str, int] = {}
        self._consumed = False

    # ------------------------------------------------------------------
    # Decoder access
    # ------------------------------------------------------------------

    def _get_parser(self) -> Any:
        if self._parser is None:
            if not DEMOPARSER2_AVAILABLE:
                raise ImportError(
                    "demoparser2 is required but not installed. "
                    "Install with: pip install demoparser2"
                )
            self._parser = Demoparser2(str(self.demo_path))
        return self._parser

    def parse_header(self) -> dict[str, Any]:
        try:
            header = self._get_parser().parse_header()
        except ImportError:
            raise
        except Exception as e:
            raise StreamDecodeError(f"Failed to decode demo header: {e}") from e
        return dict(header) if isinstance(header, dict) else {}

    def list_game_events(self) -> list[str]:
        """Names of the game events present in the demo."""
        try:
            names = self._get_parser().list_game_events()
        except ImportError:
            raise
        except Exception as e:
            raise StreamDecodeError(f"Failed to list game events: {e}") from e
        return sorted(str(n) for n in names)

    # ------------------------------------------------------------------
    # Stream
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[StreamEvent]:
        if self._consumed:
            raise RuntimeError("DemoEventSource can only be iterated once")
        self._consumed = True

        try:
            header = self.parse_header()
            ticks_df = self._decode_ticks()
            pending = self._decode_events()
        except StreamDecodeError as e:
            yield StreamEnd(error=e)
            return

        yield StreamStart(header=header)

        index = 0
        try:
            for tick, rows in ticks_df.groupby("tick", sort=True):
                self._load_tick(int(tick), rows)
                while index < len(pending) and pending[index].tick <= tick:
                    yield decode_game_event(pending[index].name, pending[index].fields)
                    index += 1
                yield TickEnd(tick=int(tick))

            # Events past the last decoded tick see the final directory state
            for event in pending[index:]:
                self.directory.current_tick = max(self.directory.current_tick, event.tick)
                yield decode_game_event(event.name, event.fields)
        except StreamDecodeError as e:
            logger.error(f"Decode error at tick {self.directory.current_tick}: {e}")
            yield StreamEnd(error=e)
            return

        yield StreamEnd()

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def _decode_ticks(self) -> pd.DataFrame:
        parser = self._get_parser()
        try:
            ticks_df = parser.parse_ticks(self.PLAYER_PROPS)
        except Exception as e:
            raise StreamDecodeError(f"Failed to decode tick data: {e}") from e

        if ticks_df is None or ticks_df.empty:
            logger.warning(f"No tick data in {self.demo_path}")
            return pd.DataFrame(columns=["tick", "steamid"])

        ticks_df = ticks_df.sort_values("tick", kind="stable")
        if "user_id" in ticks_df.columns:
            if "steamid" in ticks_df.columns:
                self._steam_to_user = self._unique_user_ids(ticks_df, "steamid")
                # Bots report SteamID 0
                self._steam_to_user.pop("0", None)
            if "name" in ticks_df.columns:
                self._name_to_user = self._unique_user_ids(ticks_df, "name")
        logger.info(f"Decoded {len(ticks_df)} player tick rows")
        return ticks_df

    @staticmethod
    def _unique_user_ids(ticks_df: pd.DataFrame, column: str) -> dict[str, int]:
        """Map ``column`` values to user ids, leaving out values shared by several players."""
        pairs = ticks_df[[column, "user_id"]].dropna().drop_duplicates()
        pairs = pairs.assign(key=pairs[column].map(safe_str), user=pairs["user_id"].map(safe_int))
        pairs = pairs.drop_duplicates(["key", "user"])
        shared = pairs["key"].duplicated(keep=False)
        if shared.any():
            shared_keys = sorted(pairs.loc[shared, "key"].unique())
            logger.debug(f"{column} shared by several players: {shared_keys}")
        unique = pairs[~shared]
        return {key: int(user) for key, user in zip(unique["key"], unique["user"])}

    def _parse_event_safe(self, event_name: str) -> pd.DataFrame:
        """Decode one event type, returning an empty DataFrame when absent."""
        parser = self._get_parser()
        try:
            df = parser.parse_event(event_name)
        except Exception as e:
            logger.debug(f"Could not parse {event_name}: {e}")
            return pd.DataFrame()
        if df is None or df.empty:
            return pd.DataFrame()
        logger.debug(f"Parsed {len(df)} {event_name} events")
        return df

    def _decode_events(self) -> list[_PendingEvent]:
        pending: list[_PendingEvent] = []
        order = 0
        for name in self.events:
            df = self._parse_event_safe(name)
            if df.empty:
                continue
            if "tick" not in df.columns:
                raise StreamDecodeError(f"'{name}' events carry no tick column")
            for row in df.to_dict("records"):
                tick = safe_int(row.get("tick"))
                fields = self._event_fields(row)
                if name in SUBJECT_REQUIRED_EVENTS and "userid" not in fields:
                    logger.warning(f"Skipping {name} at tick {tick}: player could not be resolved")
                    continue
                pending.append(
                    _PendingEvent(
                        tick=tick,
                        priority=_EVENT_PRIORITY.get(name, 2),
                        order=order,
                        name=name,
                        fields=fields,
                    )
                )
                order += 1
        pending.sort(key=lambda e: (e.tick, e.priority, e.order))
        logger.info(f"Decoded {len(pending)} game events")
        return pending

    def _event_fields(self, row: dict[str, Any]) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        for field_name, candidates in PLAYER_REFERENCE_FIELDS.items():
            player_id = self._resolve_player_id(row, candidates)
            if player_id is not None:
                fields[field_name] = player_id
        for key in PASSTHROUGH_FIELDS:
            value = row.get(key)
            if not is_missing(value):
                fields[key] = value
        return fields

    def _resolve_player_id(self, row: dict[str, Any], candidates: tuple[str, ...]) -> Any:
        for column in candidates:
            value = row.get(column)
            if is_missing(value):
                continue
            if column.endswith("_steamid"):
                user_id = self._steam_to_user.get(safe_str(value))
                if user_id is None:
                    # Shared or bot SteamID: fall back to the player name
                    name = row.get(column.removesuffix("_steamid") + "_name")
                    if not is_missing(name):
                        user_id = self._name_to_user.get(safe_str(name))
                if user_id is not None:
                    return user_id
                continue
            user_id = safe_optional_int(value)
            # Unreadable ids pass through; the event model rejects them
            return value if user_id is None else user_id
        return None

    def _load_tick(self, tick: int, rows: pd.DataFrame) -> None:
        players: list[PlayerHandle] = []
        weapons: dict[int, str] = {}
        round_num = self.directory.current_round

        for row in rows.to_dict("records"):
            steam_id = safe_str(row.get("steamid"))
            player_id = safe_optional_int(row.get("user_id"))
            if player_id is None:
                player_id = self._steam_to_user.get(steam_id)
            if player_id is None:
                continue

            players.append(
                PlayerHandle(
                    player_id=player_id,
                    steam_id=steam_id,
                    name=safe_str(row.get("name")),
                    health=safe_int(row.get("health")),
                    position=Position(
                        safe_float(row.get("X")),
                        safe_float(row.get("Y")),
                        safe_float(row.get("Z")),
                    ),
                    view_angles=(safe_float(row.get("pitch")), safe_float(row.get("yaw"))),
                    speed=math.sqrt(
                        safe_float(row.get("velocity_X")) ** 2
                        + safe_float(row.get("velocity_Y")) ** 2
                        + safe_float(row.get("velocity_Z")) ** 2
                    ),
                    place_name=safe_str(row.get("last_place_name")),
                )
            )
            weapon = normalize_weapon_class(row.get("active_weapon_name"))
            if weapon:
                weapons[player_id] = weapon
            if not is_missing(row.get("total_rounds_played")):
                round_num = safe_int(row.get("total_rounds_played"))

        self.directory.current_tick = tick
        self.directory.current_round = round_num
        self.directory.set_players(players, weapons)
