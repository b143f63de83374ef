"""Merkle distributor — one-time disbursement of committed token allocations."""

__version__ = "0.1.0"
