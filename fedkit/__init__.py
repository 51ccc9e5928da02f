"""Consensus encoding, in-memory storage, amounts and module interfaces for federated e-cash systems."""

__version__ = "0.1.0"