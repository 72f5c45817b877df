"""Shared utilities for cdb."""
