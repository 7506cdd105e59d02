"""Day-over-day usage change alerts for billing connections."""

__version__ = "0.1.0"
