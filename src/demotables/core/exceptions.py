"""Exception types raised by DemoTables."""


class DemoTablesError(Exception):
    """Base class for all DemoTables errors."""


class StreamDecodeError(DemoTablesError):
    """The event stream could not be decoded; processing is aborted."""


class EntityLookupMiss(DemoTablesError):
    """A referenced player or weapon no longer resolves in the entity directory."""


class UnknownUtilityClass(DemoTablesError):
    """A fired weapon class is not a known utility."""


class SinkWriteError(DemoTablesError):
    """A table sink failed to write or close."""

    def __init__(self, table: str, message: str):
        super().__init__(f"{table}: {message}")
        self.table = table


class ConfigError(DemoTablesError, ValueError):
    """Invalid configuration value."""
