"""
schemagraph Test Suite.

This package contains:
- unit/: Unit tests (pure graph, compiler, registry and CLI code)
- integration/: Integration tests (HTTP API through the FastAPI test client)
"""
