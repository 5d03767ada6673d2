"""Exception types shared across TrendStream services."""


class TrendStreamError(Exception):
    """Base class for all TrendStream errors."""


class TransportError(TrendStreamError):
    """The message feed or the upstream trend source failed."""


class PersistenceError(TrendStreamError):
    """A Store operation failed."""


class ConfigurationError(TrendStreamError):
    """Settings or word lists are missing or invalid."""
