"""Shared utilities: logging and hashing."""
