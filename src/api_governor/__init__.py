"""
API governor: client-side resilience for outbound calls to a remote HTTP API.

- governor: multi-window rate limiting, throttling circuit breaker, metrics
- executor: retry-with-backoff around a single async attempt
- client: httpx adapter running every request through the executor
- api: FastAPI router reporting a governor's state
"""

__version__ = "1.0.0"
