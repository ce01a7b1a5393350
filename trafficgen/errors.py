"""
Exceptions raised by trafficgen.
"""


class TrafficgenError(Exception):
    """Base exception for all trafficgen errors."""


class ConfigError(TrafficgenError):
    """Raised when startup configuration (e.g. the URL file) cannot be used."""
