"""Small shared helpers (environment parsing, debug logging)."""
