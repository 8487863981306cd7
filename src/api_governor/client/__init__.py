"""HTTP client adapter composing the governor and the resilient executor."""

from .http_client import ResilientHttpClient, decode_body, to_upstream_error

__all__ = [
    "ResilientHttpClient",
    "decode_body",
    "to_upstream_error"
]
