"""Core configuration and database layer."""
