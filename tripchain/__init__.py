"""TripCoin ledger primitives: balances, accounts, mempools, block records and contracts."""

__version__ = "0.1.0"