"""Simulated network sensors."""
