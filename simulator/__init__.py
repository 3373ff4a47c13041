"""Simulation management backend: persistence and runner access."""
