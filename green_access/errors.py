"""Exceptions raised while scoring tracts."""


class ScoringError(Exception):
    """A single tract could not be scored."""

    kind = "error"


class DegenerateGeometryError(ScoringError):
    """Empty, invalid or zero-area geometry."""

    kind = "degenerate_geometry"


class MissingAttributeError(ScoringError):
    """A required attribute (population, reference density) is missing or unusable."""

    kind = "missing_attribute"


class CRSMismatchError(Exception):
    """Layers measured in different coordinate systems were combined."""


class ConfigError(ValueError):
    """Invalid configuration value."""
