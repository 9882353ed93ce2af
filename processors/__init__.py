"""Backup processors."""
