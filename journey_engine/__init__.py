"""Journey engine: multi-stage AI exploration orchestration."""

__version__ = "0.1.0"
