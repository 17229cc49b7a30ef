"""VoteChain - votes chained into a tamper-evident ledger of hash-linked blocks."""

__version__ = "0.1.0"
