"""Concordium transaction history export for tax reporting tools."""

__version__ = "0.1.0"
