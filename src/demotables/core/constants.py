"""
DemoTables - Constants

Game event names, utility classification and table layout constants used
across the correlation engine, the event sources and the sinks.
"""

from enum import StrEnum

from demotables.core.exceptions import UnknownUtilityClass


class GameEventName(StrEnum):
    """
    Named game events the correlation engine understands.

    Any other event name decoded from a demo is treated as unknown and
    ignored by the engine.
    """

    # Match phase / round flow
    MATCH_START = "round_announce_match_start"
    ROUND_START = "round_start"
    ROUND_OFFICIALLY_ENDED = "round_officially_ended"

    # Combat
    WEAPON_FIRE = "weapon_fire"
    PLAYER_DEATH = "player_death"

    # Utility lifecycle
    HEGRENADE_DETONATE = "hegrenade_detonate"
    FLASHBANG_DETONATE = "flashbang_detonate"
    SMOKEGRENADE_DETONATE = "smokegrenade_detonate"
    SMOKEGRENADE_EXPIRED = "smokegrenade_expired"
    MOLOTOV_DETONATE = "molotov_detonate"
    INFERNO_STARTBURN = "inferno_startburn"
    INFERNO_EXPIRE = "inferno_expire"
    INFERNO_EXTINGUISH = "inferno_extinguish"
    DECOY_STARTED = "decoy_started"
    DECOY_DETONATE = "decoy_detonate"

    # Bomb lifecycle
    BOMB_PLANTED = "bomb_planted"
    BOMB_DEFUSED = "bomb_defused"
    BOMB_EXPLODED = "bomb_exploded"
    BOMB_DROPPED = "bomb_dropped"
    BOMB_PICKUP = "bomb_pickup"


class UtilityCategory(StrEnum):
    """Grenade-class equipment categories."""

    HEGRENADE = "hegrenade"
    FLASHBANG = "flashbang"
    SMOKEGRENADE = "smokegrenade"
    MOLOTOV = "molotov"
    INCGRENADE = "incgrenade"
    DECOY = "decoy"


class UtilityEventKind(StrEnum):
    """Values of the ``event_kind`` column of the utility lifecycle table."""

    # Synthesized from weapon_fire ("utility leaves hand")
    HEGRENADE_THROWN = "hegrenade_thrown"
    FLASHBANG_THROWN = "flashbang_thrown"
    SMOKEGRENADE_THROWN = "smokegrenade_thrown"
    MOLOTOV_THROWN = "molotov_thrown"
    INCGRENADE_THROWN = "incgrenade_thrown"
    DECOY_THROWN = "decoy_thrown"

    # Copied from dedicated game events
    HEGRENADE_DETONATE = "hegrenade_detonate"
    FLASHBANG_DETONATE = "flashbang_detonate"
    SMOKEGRENADE_DETONATE = "smokegrenade_detonate"
    SMOKEGRENADE_EXPIRED = "smokegrenade_expired"
    MOLOTOV_DETONATE = "molotov_detonate"
    INFERNO_STARTBURN = "inferno_startburn"
    INFERNO_EXPIRE = "inferno_expire"
    INFERNO_EXTINGUISH = "inferno_extinguish"
    DECOY_STARTED = "decoy_started"
    DECOY_DETONATE = "decoy_detonate"

    @classmethod
    def thrown(cls, category: UtilityCategory) -> "UtilityEventKind":
        """Event kind recorded when a utility of ``category`` is thrown."""
        return cls(f"{category.value}_thrown")


class BombEventKind(StrEnum):
    """Values of the ``event_kind`` column of the bomb lifecycle table."""

    PLANTED = "bomb_planted"
    DEFUSED = "bomb_defused"
    EXPLODED = "bomb_exploded"
    DROPPED = "bomb_dropped"
    PICKUP = "bomb_pickup"


# Weapon class identifier -> utility category.
# Incendiary and molotov are distinct classes with distinct categories.
UTILITY_CLASSIFICATION: dict[str, UtilityCategory] = {
    "weapon_hegrenade": UtilityCategory.HEGRENADE,
    "weapon_flashbang": UtilityCategory.FLASHBANG,
    "weapon_smokegrenade": UtilityCategory.SMOKEGRENADE,
    "weapon_molotov": UtilityCategory.MOLOTOV,
    "weapon_incgrenade": UtilityCategory.INCGRENADE,
    "weapon_decoy": UtilityCategory.DECOY,
}


def classify_utility(class_id: str) -> UtilityCategory:
    """
    Look up the utility category of a weapon class.

    Raises:
        UnknownUtilityClass: If the class is not grenade-class equipment
    """
    try:
        return UTILITY_CLASSIFICATION[class_id]
    except KeyError:
        raise UnknownUtilityClass(class_id) from None


UTILITY_LIFECYCLE_EVENTS = frozenset(
    {
        GameEventName.HEGRENADE_DETONATE,
        GameEventName.FLASHBANG_DETONATE,
        GameEventName.SMOKEGRENADE_DETONATE,
        GameEventName.SMOKEGRENADE_EXPIRED,
        GameEventName.MOLOTOV_DETONATE,
        GameEventName.INFERNO_STARTBURN,
        GameEventName.INFERNO_EXPIRE,
        GameEventName.INFERNO_EXTINGUISH,
        GameEventName.DECOY_STARTED,
        GameEventName.DECOY_DETONATE,
    }
)

BOMB_LIFECYCLE_EVENTS = frozenset(
    {
        GameEventName.BOMB_PLANTED,
        GameEventName.BOMB_DEFUSED,
        GameEventName.BOMB_EXPLODED,
        GameEventName.BOMB_DROPPED,
        GameEventName.BOMB_PICKUP,
    }
)

# Display names some decoders report for the active weapon, mapped to class ids
WEAPON_DISPLAY_NAMES: dict[str, str] = {
    "high explosive grenade": "weapon_hegrenade",
    "he grenade": "weapon_hegrenade",
    "flashbang": "weapon_flashbang",
    "smoke grenade": "weapon_smokegrenade",
    "molotov": "weapon_molotov",
    "incendiary grenade": "weapon_incgrenade",
    "decoy grenade": "weapon_decoy",
}


# Output tables (file stem per record kind)
TICK_TABLE = "tick"
PLAYER_DEATH_TABLE = "player_death"
WEAPON_FIRE_TABLE = "weapon_fire"
UTILITY_LIFECYCLE_TABLE = "utility_lifecycle"
BOMB_LIFECYCLE_TABLE = "bomb_lifecycle"

TABLE_NAMES = (
    TICK_TABLE,
    PLAYER_DEATH_TABLE,
    WEAPON_FIRE_TABLE,
    UTILITY_LIFECYCLE_TABLE,
    BOMB_LIFECYCLE_TABLE,
)

EVENTS_DUMP_FILE = "events_dump.csv"

DEFAULT_DELIMITER = ";"

# Verboseness levels accepted by the CLI
VERBOSENESS_SILENT = 0
VERBOSENESS_LIFECYCLE = 1
VERBOSENESS_RECORDS = 2
