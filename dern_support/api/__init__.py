"""REST API for Dern Support."""
