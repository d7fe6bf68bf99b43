"""Score technology signals against a repository fingerprint, store them, and plan follow-up work."""

__version__ = "0.1.0"