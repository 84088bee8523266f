class ModeTransitionError(ValueError):
    """Raised when the signal marking the end of a test never changes state."""


class NoNewLogsError(RuntimeError):
    """Raised when an SD card holds no log that has not been imported yet."""


class ConfigError(ValueError):
    """Raised for unreadable or unknown configuration entries."""
