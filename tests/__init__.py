"""
Libris Test Suite

Tests are organized into:
- unit/: Repositories, security primitives and middleware helpers
- integration/: HTTP API through an in-process ASGI client
"""
