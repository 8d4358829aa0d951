"""
Core library: Reusable, domain-agnostic components.

Modules:
    errors      - DomainError tagged union and HTTP status classification
    resilience  - Per-key fair rate limiting, retry with backoff
    logging     - Structured JSON logging with request-scoped context
    utils       - JSON serialization helpers

Design Principles:
    - No dependencies on the Airtable domain package
    - All modules are independently testable
    - Async-first where applicable
"""

from .types import ErrorKind, ExceptionCategory, Severity

__version__ = "0.1.0"

__all__ = [
    "ErrorKind",
    "ExceptionCategory",
    "Severity",
]
