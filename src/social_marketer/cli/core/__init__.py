"""Core utilities for CLI - console, result type and service access."""

from .console import console, print_error
from .runtime import get_services, parse_platform
from .types import Failure, Result, Success

__all__ = [
    # Types
    "Result",
    "Success",
    "Failure",
    # Runtime
    "get_services",
    "parse_platform",
    # Console
    "console",
    "print_error",
]
