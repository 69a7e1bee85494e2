"""Shared utilities for termrelay."""
