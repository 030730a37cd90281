"""wakecall: scheduled, personality-voiced wake-up calls."""

__version__ = "0.1.0"
