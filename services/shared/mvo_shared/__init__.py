"""Shared credits and votes library for the MVO services."""
