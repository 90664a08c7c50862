"""Exception classes for foundation utilities.

This module provides exception classes used by foundation components.
"""


class FoundationError(Exception):
    """Base exception class for foundation-related errors."""


class UpstreamError(FoundationError):
    """Exception raised when an upstream dependency is unavailable.

    For the fixture packages the upstream dependency is the container
    runtime: the Docker daemon is not running, its socket is not reachable,
    or it rejected the connection.
    """
