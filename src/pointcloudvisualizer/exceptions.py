"""
Exceptions raised for programming errors that cannot be degraded into a
logged no-op. Everything else is logged and skipped.
"""


class VisualizerError(Exception):
    """Base class of all visualizer errors."""


class FeatureNotFoundError(VisualizerError, KeyError):
    """Raised when a feature is requested by a name the cloud does not have."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Feature '{self.name}' does not exist."


class FeatureLengthError(VisualizerError, ValueError):
    """Raised when a feature does not have one value per point of its cloud."""


class UnsupportedRecordError(VisualizerError, TypeError):
    """Raised when a point record type has no explicit decomposition into features."""
