"""HTTP API for the MVO credits and votes service."""
