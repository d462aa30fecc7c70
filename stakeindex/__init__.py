"""Storage rows, validator storage, chain modules and query actions for a proof-of-stake chain indexer."""

__version__ = "0.1.0"