"""Exception types for Eideus."""


class EideusError(Exception):
    """Base class for engine errors."""


class ConfigurationError(EideusError):
    """Raised when the engine is missing configuration it needs for a turn.

    The message is meant to be shown to the player as-is.
    """


class MalformedPayloadError(EideusError):
    """Raised when the generator's structured update cannot be parsed."""


class MemoryWriteError(EideusError):
    """Raised when a turn cannot be recorded into the lattice."""
