"""Workflows composed from the core building blocks."""
