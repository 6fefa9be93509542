"""Command-line interface for Dern Support."""
