"""Core helpers shared across the API layer."""
