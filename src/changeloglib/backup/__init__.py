"""Backup persistence."""
