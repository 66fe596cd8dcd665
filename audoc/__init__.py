"""Coverage, staleness and resumable-progress engine for `.au` understanding files."""

__version__ = "0.1.0"
