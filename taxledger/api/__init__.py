"""API layer package for the read-only HTTP surface."""

from .application import create_api_application

__all__ = ["create_api_application"]
