"""
DemoTables Core - Foundation modules for the correlation engine.

This module contains the fundamental components:
- constants: Game event names, utility classification, table names
- exceptions: Error hierarchy
- schemas: Output record contracts
- events: Typed stream events and payload validation
- directory: Entity directory contract and in-memory implementation
- stream: Event source contract and scripted source
- config: Application configuration management
- utils: Conversion, timing and logging helpers
"""

from demotables.core.constants import (
    BOMB_LIFECYCLE_EVENTS,
    TABLE_NAMES,
    UTILITY_CLASSIFICATION,
    UTILITY_LIFECYCLE_EVENTS,
    BombEventKind,
    GameEventName,
    UtilityCategory,
    UtilityEventKind,
    classify_utility,
)
from demotables.core.exceptions import (
    ConfigError,
    DemoTablesError,
    EntityLookupMiss,
    SinkWriteError,
    StreamDecodeError,
    UnknownUtilityClass,
)
from demotables.core.schemas import (
    BombLifecycleRecord,
    DeathRecord,
    PlayerSnapshot,
    Position,
    UtilityLifecycleRecord,
    WeaponFireRecord,
)

__all__ = [
    # Enums
    "BombEventKind",
    "GameEventName",
    "UtilityCategory",
    "UtilityEventKind",
    # Constants
    "BOMB_LIFECYCLE_EVENTS",
    "TABLE_NAMES",
    "UTILITY_CLASSIFICATION",
    "UTILITY_LIFECYCLE_EVENTS",
    "classify_utility",
    # Errors
    "ConfigError",
    "DemoTablesError",
    "EntityLookupMiss",
    "SinkWriteError",
    "StreamDecodeError",
    "UnknownUtilityClass",
    # Records (data contracts)
    "BombLifecycleRecord",
    "DeathRecord",
    "PlayerSnapshot",
    "Position",
    "UtilityLifecycleRecord",
    "WeaponFireRecord",
]
