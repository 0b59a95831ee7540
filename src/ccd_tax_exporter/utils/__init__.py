"""Shared helpers for dates, amounts, sanitization and logging."""
