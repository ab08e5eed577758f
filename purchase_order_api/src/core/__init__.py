"""
Core application utilities for settings, logging, errors and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- Structured logging with correlation ids
- The typed error hierarchy rendered by the API layer
- Dependency helpers (bearer-token user, role checks, header schema)
"""
