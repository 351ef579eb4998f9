"""Exception types raised by the ranking core."""


class RankingError(Exception):
    """Base class for all ranking errors."""


class ShapeMismatchError(RankingError, ValueError):
    """Feature or weight vector length does not match the model."""

    def __init__(self, expected: int, actual: int, what: str = "features"):
        super().__init__(f"Expected {expected} {what}, got {actual}")
        self.expected = expected
        self.actual = actual


class ModelPersistenceError(RankingError, OSError):
    """Model weights could not be read from or written to the store."""


class ConfigError(RankingError, ValueError):
    """Invalid ranking configuration value."""
