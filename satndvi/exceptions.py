"""Exceptions raised by :mod:`satndvi`."""


class SatNdviError(Exception):
    """Base class for errors raised by this package."""


class BandShapeError(SatNdviError, ValueError):
    """Bands cannot be combined because their grids differ."""


class ConfigError(SatNdviError, ValueError):
    """A run configuration is missing a key or contains an unknown one."""
