"""Utility modules for crossroute."""

from crossroute.utils.concurrency import ConcurrencyLimiter, gather_settled

__all__ = ["ConcurrencyLimiter", "gather_settled"]
