class VenueEngineError(Exception):
    """Base class for errors raised by the venue engine itself."""


class InternalInvariantError(VenueEngineError):
    """Raised when internal data breaks an invariant. Indicates a bug."""


class ConfigurationError(VenueEngineError):
    """Raised at construction time for an unusable engine configuration."""
