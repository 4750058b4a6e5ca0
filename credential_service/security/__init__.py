"""Hashing, one-time codes, session tokens and request guards."""
