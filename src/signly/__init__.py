"""Signly: multi-party document signing with deadlines."""

__version__ = "0.1.0"
