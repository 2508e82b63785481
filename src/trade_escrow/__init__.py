"""Trade Escrow - four-party conditional-payment ledger."""

__version__ = "0.1.0"
