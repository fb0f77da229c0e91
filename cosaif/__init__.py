"""Cosaif incident blocking: push-driven incident lock for client sessions."""

__version__ = "1.0.0"
