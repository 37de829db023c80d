"""
LP position indexer for Uniswap-V3-family position managers.

Tracks position lifecycle (open / close / re-open), cumulative deposit and
withdraw economics, and open/closed counters at pool, account and protocol
scope.
"""

__version__ = "0.3.0"
