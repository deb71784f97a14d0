"""Kernel write services (flush-only; the caller owns the transaction)."""
