"""Verifiable-credential lifecycle broker."""

__version__ = "0.1.0"
