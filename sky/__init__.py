"""Sample-metrics seeding for the sky time-series store."""

__version__ = "0.1.0"
