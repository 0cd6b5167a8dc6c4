"""Tenancy lifecycle and billing scheduler."""

__version__ = "0.1.0"
