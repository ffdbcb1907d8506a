"""Capture backends turning live traffic into observation dicts."""
