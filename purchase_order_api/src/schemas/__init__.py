"""
Public Pydantic schemas used by FastAPI routes, services, and tests.

Request and response models for the procurement and external endpoints, the
bearer-token identity, and the standard error envelope.
"""

from .common import ErrorResponse, HealthResponse  # noqa: F401
