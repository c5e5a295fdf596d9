"""Trip batch reconciliation and forecast-accuracy service."""

__version__ = "0.1.0"
