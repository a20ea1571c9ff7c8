"""Configuration, address parsing, key handling, events and proof-of-possession helpers for a Bitcoin staking daemon."""

__version__ = "0.1.0"