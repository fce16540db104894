"""
Shared utilities for the AppData service core.

This package aggregates common building blocks consumed by the service:

- base_service: FastAPI service skeleton with health and request correlation
- config: Process configuration via pydantic-settings
- logging: Structured logging with request correlation
- errors: Canonical error types and responses
- retry: Retry decorator for transient backend failures
- test_helpers: Token, key and fake-backend factories for tests

Any cross-service logic should live here to avoid import cycles. Do not
import from service_* packages into shared/.
"""
