"""Idea Ledger: employee improvement ideas, votes and lifecycle tracking."""

__version__ = "1.0.0"
