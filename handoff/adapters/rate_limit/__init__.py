"""Rate limiting storage adapters.

A limiter keeps its counters in a store so the process-local default can be
replaced by a shared backend (e.g., Redis) without touching the limiter or
the API layer.
"""
