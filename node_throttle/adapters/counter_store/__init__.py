"""Counter store adapters.

Per-identifier throttle state lives behind a small abstraction so the engine
can run against an in-memory dict in tests and a shared store (Redis or a
SQL table) in production.
"""
