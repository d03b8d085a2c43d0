"""Caching proxy for the LTA DataMall bus arrival API."""

__version__ = "0.1.0"
