"""flatsketch — garment image to parameters and an editable vector flat sketch."""

__version__ = "0.1.0"
