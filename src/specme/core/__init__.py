"""Core engine modules for specme."""
