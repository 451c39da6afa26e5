"""Home-visit laboratory sample scheduling engine."""

__version__ = "0.1.0"
