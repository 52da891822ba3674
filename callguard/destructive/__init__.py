"""Destructive-command classification."""
