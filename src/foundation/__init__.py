"""Foundation utilities shared by the fixture packages.

This package provides shared utilities including:
- Structured JSON logging
- Retry with exponential backoff
- Base exception classes
"""
