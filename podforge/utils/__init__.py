"""Shared helpers: logging, JSON decoding, input validation."""
