"""Shared utilities: keyboard backends, logging, version information."""
