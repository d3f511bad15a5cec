"""
Exception types raised by the ShipsNet data pipeline.
"""


class ShipClassifierError(Exception):
    """Base class for errors raised by this package"""


class ShapeError(ShipClassifierError, ValueError):
    """A raw sample or image does not have the expected dimensions"""


class FormatError(ShipClassifierError, ValueError):
    """The input file is not the expected ShipsNet JSON structure"""
