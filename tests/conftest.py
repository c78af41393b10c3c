"""Shared fixtures for the DemoTables test suite."""

from unittest.mock import MagicMock

import pandas as pd
import pytest

from demotables.core.directory import PlayerHandle
from demotables.core.schemas import Position
from demotables.core.stream import ScriptedEventSource
from demotables.sinks import memory_sinks

ALICE_STEAM = "76561198000000001"
BOB_STEAM = "76561198000000002"


@pytest.fixture
def make_player():
    """Factory for PlayerHandle objects with sensible defaults."""

    def _make(
        player_id: int,
        health: int = 100,
        position: tuple[float, float, float] = (0.0, 0.0, 0.0),
        name: str | None = None,
    ) -> PlayerHandle:
        return PlayerHandle(
            player_id=player_id,
            steam_id=f"7656119800000{player_id:04d}",
            name=name or f"Player{player_id}",
            health=health,
            position=Position(*position),
            view_angles=(2.5, 90.0),
            speed=250.0,
            place_name="BombsiteA",
        )

    return _make


@pytest.fixture
def sinks():
    return memory_sinks()


@pytest.fixture
def source():
    return ScriptedEventSource()


@pytest.fixture
def demo_file(tmp_path):
    """An empty file with a .dem suffix (decoding is mocked)."""
    path = tmp_path / "match.dem"
    path.write_bytes(b"PBDEMS2\x00")
    return path


@pytest.fixture
def ticks_df():
    """Tick table for two players over three ticks; Bob dies on tick 102."""
    rows = []
    for tick, alice_weapon, bob_health in [
        (100, "AK-47", 100),
        (101, "High Explosive Grenade", 100),
        (102, "AK-47", 0),
    ]:
        rows.append(
            {
                "tick": tick,
                "steamid": ALICE_STEAM,
                "name": "Alice",
                "X": 100.0 + tick,
                "Y": 200.0,
                "Z": 10.0,
                "pitch": 1.0,
                "yaw": 45.0,
                "velocity_X": 3.0,
                "velocity_Y": 4.0,
                "velocity_Z": 0.0,
                "health": 100,
                "last_place_name": "TSpawn",
                "active_weapon_name": alice_weapon,
                "user_id": 2,
                "total_rounds_played": 1,
            }
        )
        rows.append(
            {
                "tick": tick,
                "steamid": BOB_STEAM,
                "name": "Bob",
                "X": -50.0,
                "Y": -60.0,
                "Z": 0.0,
                "pitch": -3.0,
                "yaw": 180.0,
                "velocity_X": 0.0,
                "velocity_Y": 0.0,
                "velocity_Z": 0.0,
                "health": bob_health,
                "last_place_name": "CTSpawn",
                "active_weapon_name": "M4A4",
                "user_id": 3,
                "total_rounds_played": 1,
            }
        )
    return pd.DataFrame(rows)


@pytest.fixture
def events_by_name():
    """Decoded game events keyed by name, as demoparser2.parse_event returns them."""
    return {
        "round_announce_match_start": pd.DataFrame([{"tick": 100}]),
        "weapon_fire": pd.DataFrame(
            [{"tick": 101, "user_steamid": ALICE_STEAM, "user_name": "Alice", "weapon": "weapon_hegrenade"}]
        ),
        "player_death": pd.DataFrame(
            [
                {
                    "tick": 102,
                    "user_steamid": BOB_STEAM,
                    "attacker_steamid": ALICE_STEAM,
                    "assister_steamid": None,
                    "weapon": "hegrenade",
                    "headshot": False,
                    "penetrated": 0,
                    "assistedflash": False,
                }
            ]
        ),
        "hegrenade_detonate": pd.DataFrame(
            [
                {
                    "tick": 102,
                    "user_steamid": ALICE_STEAM,
                    "entityid": 155,
                    "x": 10.0,
                    "y": 20.0,
                    "z": 5.0,
                }
            ]
        ),
    }


@pytest.fixture
def fake_demoparser(ticks_df, events_by_name):
    """Stand-in for a demoparser2.DemoParser instance."""
    parser = MagicMock()
    parser.parse_header.return_value = {"map_name": "de_mirage", "server_name": "Test Server"}
    parser.parse_ticks.return_value = ticks_df
    parser.parse_event.side_effect = lambda name: events_by_name.get(name, pd.DataFrame())
    parser.list_game_events.return_value = list(events_by_name) + ["player_footstep"]
    return parser
