"""
Custom exceptions for the shared client package.

This module provides specialized exceptions for better error handling
when building clients on top of the shared transports.
"""


class ClientError(Exception):
    """Base exception for all shared client errors."""

    def __init__(self, message: str, *args, **kwargs):
        super().__init__(message, *args)
        self.message = message
        self.details = kwargs


class HTTPError(ClientError):
    """Raised when a request completes with an unexpected status code."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: dict | str | None = None,
    ):
        super().__init__(message, status_code=status_code, response_body=response_body)
        self.status_code = status_code
        self.response_body = response_body


class TransportError(ClientError):
    """Raised when a request fails at the network level (no HTTP response)."""

    pass


class ProxyError(TransportError):
    """Raised when there's an issue with the proxy configuration or connection."""

    pass


class RequestTimeoutError(TransportError):
    """Raised when a request times out."""

    pass


class AuthenticationError(ClientError):
    """Raised when authentication fails."""

    pass


class ConfigurationError(ClientError):
    """Raised when there's an issue with client configuration."""

    pass
