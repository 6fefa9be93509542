"""Dern Support technician scheduling service."""

__version__ = "0.1.0"
