"""Rate-limited, never-ending HTTP download load generator with resource telemetry."""

__version__ = "1.0.0"
